from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import DESCENDING, ReturnDocument

from ..models.blood_request import BloodRequest
from ..utils.logging import storage_errors
from .users import resolve_id


def _to_request(document: Dict[str, Any]) -> BloodRequest:
    document["_id"] = str(document["_id"])
    return BloodRequest.model_validate(document)


class RequestStore:
    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self.collection = collection

    async def create(self, request: BloodRequest) -> BloodRequest:
        document = request.model_dump(by_alias=True, exclude={"id"})
        with storage_errors("create_request"):
            result = await self.collection.insert_one(document)
        return request.model_copy(update={"id": str(result.inserted_id)})

    async def get(self, request_id: str) -> BloodRequest | None:
        with storage_errors("get_request"):
            document = await self.collection.find_one({"_id": resolve_id(request_id)})
        return _to_request(document) if document else None

    async def update(
        self,
        request_id: str,
        expected_status: str,
        expected_version: int,
        changes: Dict[str, Any],
    ) -> BloodRequest | None:
        """
        Apply ``changes`` only if the stored request still has the status and
        version it was read with. Returns None when another writer got there first.
        """
        query = {
            "_id": resolve_id(request_id),
            "status": expected_status,
            "version": expected_version,
        }
        with storage_errors("update_request"):
            document = await self.collection.find_one_and_update(
                query,
                {"$set": changes, "$inc": {"version": 1}},
                return_document=ReturnDocument.AFTER,
            )
        return _to_request(document) if document else None

    async def query(
        self,
        criteria: Dict[str, Any],
        sort: Sequence[Tuple[str, int]] = (("createdAt", DESCENDING),),
        limit: int = 0,
    ) -> List[BloodRequest]:
        with storage_errors("query_requests"):
            cursor = self.collection.find(criteria, sort=list(sort), limit=limit)
            return [_to_request(document) async for document in cursor]

    async def count(self, criteria: Dict[str, Any]) -> int:
        with storage_errors("count_requests"):
            return await self.collection.count_documents(criteria)

    async def aggregate_counts(self, field: str, criteria: Dict[str, Any] | None = None) -> Dict[str, int]:
        pipeline: List[Dict[str, Any]] = []
        if criteria:
            pipeline.append({"$match": criteria})
        pipeline.append({"$group": {"_id": f"${field}", "count": {"$sum": 1}}})
        with storage_errors("aggregate_requests"):
            return {
                str(row["_id"]): row["count"]
                async for row in self.collection.aggregate(pipeline)
            }

    async def donation_summary(self, donor_id: str) -> Tuple[int, datetime | None]:
        """Number of requests this donor completed and the latest completion time."""
        pipeline = [
            {"$match": {"matchedDonors": {"$elemMatch": {"donor": donor_id, "status": "completed"}}}},
            {"$group": {"_id": None, "total": {"$sum": 1}, "last": {"$max": "$completedAt"}}},
        ]
        with storage_errors("donation_summary"):
            rows = [row async for row in self.collection.aggregate(pipeline)]
        if not rows:
            return 0, None
        return rows[0]["total"], rows[0].get("last")


def open_request_filter(statuses: Iterable[str]) -> Dict[str, Any]:
    return {"status": {"$in": list(statuses)}}
