"""Deals pipeline -- stages, deals, and the service that enforces pipeline rules.

Provides SQLAlchemy models (StageModel, DealModel), Pydantic schemas, the
DealRepository for async CRUD, and PipelineService for stage deletion
guards, reordering, default-stage placement and closing deals.
"""
