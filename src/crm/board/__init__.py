"""Pipeline board -- client-side state for the drag-and-drop deal board.

Provides:
- BoardState: stages and deals grouped into columns, with hold/release
  so a refresh cannot overwrite an in-progress move
- DragCoordinator: pick-up, hover and drop resolution
- ReassignmentCommitter: optimistic stage moves with rollback on failure
- CRMClient: httpx client for the CRM API
- PipelineBoardSession: the pieces wired together against a data source
"""
