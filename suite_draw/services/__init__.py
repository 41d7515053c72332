"""
Services Layer

Draw lifecycle and allocation logic that:
- Accepts domain inputs (sessions, draws, groups, students)
- Returns domain outputs (models, result dataclasses)
- Does NOT depend on HTTP request/response objects
- Reports expected domain failures as result values, not exceptions
"""
