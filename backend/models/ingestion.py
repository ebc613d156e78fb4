from pydantic import BaseModel
from enum import Enum

class IngestionStatus(str, Enum):
    completed = "completed"
    failed = "failed"

class Checkpoint(BaseModel):
    last_processed_row: int = -1     # -1 = nothing committed yet

class IngestionReport(BaseModel):
    status: IngestionStatus = IngestionStatus.completed
    rows_total: int = 0
    rows_processed: int = 0
    rows_skipped: int = 0            # at or before the checkpoint
    rows_invalid: int = 0            # rejected at the composer boundary
    rows_failed: int = 0             # raised while composing; logged and skipped
    chunks_built: int = 0
    vectors_embedded: int = 0
    vectors_upserted: int = 0
    failed_batches: int = 0
    failed_slices: int = 0
    failed_slice_files: list[str] = []
    failed_parent_ids: list[str] = []    # recipes with a chunk in a dropped embedding batch
    last_processed_row: int = -1
    message: str = ""
