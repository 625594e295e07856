"""SpecDraft: guided question/answer drafting of planning documents."""

__version__ = "0.1.0"
