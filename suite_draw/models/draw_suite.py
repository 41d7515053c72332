from sqlmodel import Field, SQLModel


class DrawSuite(SQLModel, table=True):
    """Link between a draw and a suite it offers. Draws reference suites, never own them."""

    draw_id: int = Field(foreign_key="draw.id", primary_key=True)
    suite_id: int = Field(foreign_key="suite.id", primary_key=True)
