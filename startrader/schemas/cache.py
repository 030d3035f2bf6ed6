from typing import List

from pydantic import BaseModel


class SweepSummary(BaseModel):
    scanned: int
    deleted_keys: List[str]
    failed_keys: List[str]
