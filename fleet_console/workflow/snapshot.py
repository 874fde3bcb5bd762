"""Snapshot restore."""

from datetime import datetime
from typing import List, Optional, Tuple

from fleet_console.models.action import ActionKind
from fleet_console.models.outcomes import Failure, ValidationFailure
from fleet_console.models.server import Snapshot
from fleet_console.workflow.destructive import DestructiveWorkflow, WorkflowState


def format_size(size_gb: float) -> str:
    if size_gb < 1:
        return f"{size_gb * 1024:.0f} MB"
    return f"{size_gb:.1f} GB"


def format_date(value: str) -> str:
    """Render an ISO timestamp for display; anything unparseable is shown as-is."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return value
    return parsed.strftime("%Y-%m-%d %H:%M:%S")


class SnapshotRestoreWorkflow(DestructiveWorkflow):
    kind = ActionKind.RESTORE_SNAPSHOT
    confirmation_token = "RESTORE"

    def _reset_selection(self) -> None:
        self.snapshots: List[Snapshot] = []
        self.selected_snapshot: Optional[str] = None

    async def _fetch_options(self) -> Tuple[Optional[Failure], List[Snapshot]]:
        result = await self._fetch_list(
            f"/api/server/{self.server_id}/snapshots",
            Snapshot,
            "Failed to fetch snapshots",
        )
        if isinstance(result, Failure):
            return result, []
        return None, result

    def _apply_options(self, options: List[Snapshot]) -> None:
        self.snapshots = options
        if self.snapshots:
            self.selected_snapshot = self.snapshots[0].name

    def select(self, snapshot_name: str) -> Optional[ValidationFailure]:
        self._require(WorkflowState.SELECTING)
        if self.find(snapshot_name) is None:
            return ValidationFailure(
                field="snapshot_name", message=f"Unknown snapshot: {snapshot_name}"
            )
        self.selected_snapshot = snapshot_name
        return None

    def find(self, snapshot_name: Optional[str]) -> Optional[Snapshot]:
        return next((s for s in self.snapshots if s.name == snapshot_name), None)

    def _validate_selection(self) -> Optional[ValidationFailure]:
        if not self.selected_snapshot:
            return ValidationFailure(
                field="snapshot_name", message="Please select a snapshot to restore"
            )
        return None

    def payload(self) -> dict:
        return {"snapshot_name": self.selected_snapshot}

    def summary(self) -> dict:
        snapshot = self.find(self.selected_snapshot)
        if snapshot is None:
            return {"server": self.server_name, "snapshot": self.selected_snapshot}
        return {
            "server": self.server_name,
            "snapshot": snapshot.name,
            "created": format_date(snapshot.created_at),
            "size": format_size(snapshot.size_gb),
            "status": snapshot.status,
        }
