from typing import Any, Dict, Iterable, List, Optional, Protocol

from ..schemas import Assignment, AssignmentSummary, Difficulty

# Easiest first, not alphabetical.
_DIFFICULTY_ORDER = {Difficulty.EASY: 0, Difficulty.MEDIUM: 1, Difficulty.HARD: 2}


def _sort_key(summary: AssignmentSummary):
    return (_DIFFICULTY_ORDER[summary.difficulty], summary.title)


class Catalog(Protocol):
    """What Studio needs from an assignment store. Calls may block."""

    def list_assignments(self) -> List[AssignmentSummary]: ...

    def get_assignment(self, assignment_id: str) -> Optional[Assignment]: ...

    def ping(self) -> bool: ...

    def close(self) -> None: ...


def assignment_from_document(doc: Dict[str, Any]) -> Assignment:
    """
    Converts a stored assignment document (camelCase fields, ObjectId _id)
    into an Assignment.
    """
    return Assignment(
        id=str(doc["_id"]),
        title=doc["title"],
        difficulty=doc["difficulty"],
        short_description=doc.get("shortDescription", ""),
        question=doc.get("question", ""),
        sample_schemas=[
            {
                "table": s.get("table", ""),
                "columns": s.get("columns", []),
                "sample_rows": s.get("sampleRows", []),
            }
            for s in doc.get("sampleSchemas", [])
        ],
        expected_result=doc.get("expectedResult"),
    )


class AssignmentCatalog:
    """
    Read access to the assignment collection in MongoDB.
    """

    def __init__(
        self, connection_str: str, database: str, collection: str = "assignments"
    ):
        from pymongo import MongoClient

        self.client = MongoClient(connection_str, serverSelectionTimeoutMS=2000)
        self.collection = self.client[database][collection]

    def list_assignments(self) -> List[AssignmentSummary]:
        cursor = self.collection.find(
            {}, {"_id": 1, "title": 1, "difficulty": 1, "shortDescription": 1}
        )
        summaries = [
            AssignmentSummary(
                id=str(doc["_id"]),
                title=doc["title"],
                difficulty=doc["difficulty"],
                short_description=doc.get("shortDescription", ""),
            )
            for doc in cursor
        ]
        return sorted(summaries, key=_sort_key)

    def get_assignment(self, assignment_id: str) -> Optional[Assignment]:
        from bson import ObjectId
        from bson.errors import InvalidId

        try:
            oid = ObjectId(assignment_id)
        except (InvalidId, TypeError):
            return None

        doc = self.collection.find_one({"_id": oid})
        return assignment_from_document(doc) if doc else None

    def ping(self) -> bool:
        try:
            self.client.admin.command("ping")
            return True
        except Exception:
            return False

    def close(self) -> None:
        self.client.close()


class InMemoryCatalog:
    """
    Catalog over a fixed list of assignments. Used for demos and tests.
    """

    def __init__(self, assignments: Iterable[Assignment] = ()):
        self._assignments = {a.id: a for a in assignments}

    def list_assignments(self) -> List[AssignmentSummary]:
        return sorted(
            (a.summary() for a in self._assignments.values()), key=_sort_key
        )

    def get_assignment(self, assignment_id: str) -> Optional[Assignment]:
        return self._assignments.get(assignment_id)

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        pass
