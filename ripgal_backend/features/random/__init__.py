"""Random album/file/page selection."""
from .selector import PageSource, PageSourceKind, RandomSelector, pick_other_page

__all__ = ["PageSource", "PageSourceKind", "RandomSelector", "pick_other_page"]
