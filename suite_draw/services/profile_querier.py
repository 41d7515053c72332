"""Identity-provider profile lookup.

Thin wrapper around an XML profile endpoint used to fill in student account
details. Reads its settings from environment variables:
  - PROFILE_REQUEST_URL          endpoint URL
  - PROFILE_REQUEST_QUERY_PARAM  query-string key carrying the username
  - PROFILE_REQUEST_FIRST_NAME, PROFILE_REQUEST_LAST_NAME, PROFILE_REQUEST_EMAIL,
    PROFILE_REQUEST_GENDER, PROFILE_REQUEST_CLASS_YEAR, PROFILE_REQUEST_COLLEGE
                                 XML tag names holding each field

If any setting is missing, or the request fails, lookups return {} instead of
raising. The lottery core never calls this.
"""

import logging
import os
import xml.etree.ElementTree as ET
from typing import Dict, Optional

import requests
from sqlmodel import Session

from suite_draw.models.student import Student

logger = logging.getLogger(__name__)

# profile field -> env var naming its XML tag
TAG_SETTINGS = {
    "first_name": "PROFILE_REQUEST_FIRST_NAME",
    "last_name": "PROFILE_REQUEST_LAST_NAME",
    "email": "PROFILE_REQUEST_EMAIL",
    "gender": "PROFILE_REQUEST_GENDER",
    "class_year": "PROFILE_REQUEST_CLASS_YEAR",
    "college": "PROFILE_REQUEST_COLLEGE",
}
REQUIRED_SETTINGS = ["PROFILE_REQUEST_URL", "PROFILE_REQUEST_QUERY_PARAM"] + list(TAG_SETTINGS.values())

GENDER_MAP = {"F": "female", "M": "male"}

REQUEST_TIMEOUT_SECONDS = 10


class ProfileQuerier:
    """
    Looks up profile data for a username.

    Operates in disabled mode when configuration is incomplete
    (logs once at construction, every query returns {}).
    """

    def __init__(self):
        self.settings = {name: os.getenv(name, "") for name in REQUIRED_SETTINGS}
        missing = [name for name, value in self.settings.items() if not value]
        self.enabled = not missing
        if missing:
            logger.warning(f"Profile lookup disabled; missing settings: {', '.join(missing)}")

    def query(self, username: str) -> Dict[str, str]:
        """
        Fetch the profile for a username.

        Returns:
            dict with keys first_name, last_name, email, gender, class_year,
            college (only those present in the response), or {} on any failure
        """
        if not self.enabled:
            return {}

        try:
            response = requests.get(
                self.settings["PROFILE_REQUEST_URL"],
                params={self.settings["PROFILE_REQUEST_QUERY_PARAM"]: username},
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            return self._parse(response.text)
        except requests.RequestException as e:
            logger.warning(f"Profile request for '{username}' failed: {e}")
            return {}
        except ET.ParseError as e:
            logger.warning(f"Profile response for '{username}' is not valid XML: {e}")
            return {}

    def _parse(self, body: str) -> Dict[str, str]:
        root = ET.fromstring(body)
        profile: Dict[str, str] = {}
        for field, setting in TAG_SETTINGS.items():
            value = self._find_text(root, self.settings[setting])
            if value is not None:
                profile[field] = value
        if "gender" in profile:
            profile["gender"] = GENDER_MAP.get(profile["gender"].upper(), profile["gender"])
        return profile

    @staticmethod
    def _find_text(root: ET.Element, tag: str) -> Optional[str]:
        node = root.find(f".//{tag}")
        if node is None or node.text is None:
            return None
        return node.text.strip()


def sync_profile(session: Session, student: Student, querier: Optional[ProfileQuerier] = None) -> Dict[str, str]:
    """
    Copy looked-up profile fields onto a student.

    Returns:
        The profile that was applied ({} means nothing changed)
    """
    querier = querier or ProfileQuerier()
    profile = querier.query(student.username)
    if not profile:
        return {}

    for field, value in profile.items():
        setattr(student, field, value)
    session.add(student)
    session.commit()
    session.refresh(student)
    return profile
