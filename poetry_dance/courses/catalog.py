"""
CourseCatalog - Courses Module
Dance routines available to the mimicry game, read from the `courses`
section of the config. Only entries with a reference video count.
"""

from dataclasses import dataclass
from typing import List

from poetry_dance.utils.logger import setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class DanceCourse:
    id: str
    title: str
    author: str
    video_url: str
    dynasty: str = ""


class CourseCatalog:

    def __init__(self, entries: list):
        self._courses: List[DanceCourse] = []
        skipped = 0
        for entry in entries or []:
            video_url = (entry.get("video_url") or "").strip()
            if not video_url:
                skipped += 1
                continue
            self._courses.append(DanceCourse(
                id=str(entry["id"]),
                title=entry.get("title", ""),
                author=entry.get("author", ""),
                video_url=video_url,
                dynasty=entry.get("dynasty", "") or "",
            ))

        logger.info(f"✅ CourseCatalog: {len(self._courses)} dance routines ({skipped} without video skipped)")

    def __len__(self) -> int:
        return len(self._courses)

    def all(self) -> List[DanceCourse]:
        return list(self._courses)

    def search(self, query: str = "") -> List[DanceCourse]:
        """Substring match on title or author; blank query returns everything."""
        q = (query or "").strip()
        if not q:
            return self.all()
        return [c for c in self._courses if q in c.title or q in c.author]

    def get(self, course_id: str) -> DanceCourse:
        for course in self._courses:
            if course.id == course_id:
                return course
        raise KeyError(f"Unknown dance course: {course_id}")
