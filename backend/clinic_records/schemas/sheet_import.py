from pydantic import BaseModel, ConfigDict


class DuplicateRowOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    row_index: int
    first_index: int


class RowFailureOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    row_index: int
    reason: str
    code: str


class ImportResultOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    kind: str
    total_rows: int
    processed_rows: int
    inserted_counts: dict[str, int]
    updated_counts: dict[str, int]
    skipped_counts: dict[str, int]
    failed: list[RowFailureOut]
    duplicates: list[DuplicateRowOut]


class ImportPreviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    kind: str
    headers: list[str]
    to_import: list[int]
    duplicates: list[DuplicateRowOut]
    errors: list[RowFailureOut]


class TemplateOut(BaseModel):
    kind: str
    headers: list[str]
