"""Batch report: per-view success counts plus failure/diagnostic messages."""


class BatchReport:
    """Aggregates PlacementAttempts of one batch run.

    messages keeps every failure and diagnostic in the order they happened;
    only the summary text is truncated.
    """

    def __init__(self, mode="directional"):
        self.mode = mode
        self.per_view = {}        # view_id -> success count (collection order)
        self.view_names = {}
        self.attempts = []
        self.messages = []
        self.annotations = []
        self.match_outcomes = []

    def add_view(self, view):
        self.per_view.setdefault(view.id, 0)
        self.view_names[view.id] = view.name

    def record(self, attempt, element_name="", view_name=""):
        self.attempts.append(attempt)
        if attempt.succeeded:
            self.per_view[attempt.view_id] = self.per_view.get(attempt.view_id, 0) + 1
            self.annotations.append(attempt.annotation)
        else:
            label = element_name or attempt.element_id
            vname = view_name or self.view_names.get(attempt.view_id, attempt.view_id)
            self.messages.append(f"{label} @ {vname}: {attempt.reason}")

    def diagnostic(self, msg):
        self.messages.append(msg)

    @property
    def total_success(self):
        return sum(self.per_view.values())

    @property
    def attempted(self):
        return len(self.attempts)

    @property
    def failure_count(self):
        return sum(1 for a in self.attempts if not a.succeeded)

    def summary(self, max_failures=10):
        lines = [f"Created {self.total_success} spot elevation(s) "
                 f"in {len(self.per_view)} view(s) "
                 f"({self.attempted} attempted)."]
        for vid, count in self.per_view.items():
            lines.append(f"  {self.view_names.get(vid, vid)}: {count}")
        if self.messages:
            lines.append(f"Issues ({len(self.messages)}):")
            for msg in self.messages[:max_failures]:
                lines.append(f"  - {msg}")
            hidden = len(self.messages) - max_failures
            if hidden > 0:
                lines.append(f"  ... and {hidden} more")
        return "\n".join(lines)

    def to_dict(self, max_failures=10):
        return {
            "mode": self.mode,
            "total_success": self.total_success,
            "attempted": self.attempted,
            "failure_count": self.failure_count,
            "per_view": [
                {"view_id": vid, "view_name": self.view_names.get(vid, vid),
                 "success": count}
                for vid, count in self.per_view.items()
            ],
            "annotations": [_annotation_dict(a) for a in self.annotations],
            "attempts": [a.to_dict() for a in self.attempts],
            "messages": list(self.messages),
            "match_count": len(self.match_outcomes),
            "summary": self.summary(max_failures),
        }


def _annotation_dict(annotation):
    to_dict = getattr(annotation, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return {"id": str(annotation)}
