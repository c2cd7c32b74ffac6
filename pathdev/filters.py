"""
pathdev — Object Class Filter
=============================

Per-class switch deciding which perception objects are tracked for
deviation checks (e.g. skip pedestrians, whose forecasts are scored
elsewhere).

License: AGPL-3.0
"""

from typing import Dict, Iterable, List, Mapping, Optional, Union

from .models import ObjectLabel, ObjectSnapshot


class ObjectClassFilter:
    """
    Accepts snapshots whose label has deviation checking enabled.

    Labels missing from the mapping fall back to `default`.
    """

    def __init__(self, check_deviation: Optional[Mapping[Union[ObjectLabel, str], bool]] = None,
                 default: bool = True):
        self.default = default
        self.check_deviation: Dict[ObjectLabel, bool] = {}
        for label, enabled in (check_deviation or {}).items():
            self.check_deviation[ObjectLabel(label.lower()) if isinstance(label, str) else label] = bool(enabled)

    @classmethod
    def from_object_parameters(cls, params: Mapping[str, Mapping[str, bool]]) -> "ObjectClassFilter":
        """
        Build from the parameter-file layout:

            {"car": {"check_deviation": True}, "pedestrian": {"check_deviation": False}}
        """
        return cls({label: bool(opts.get("check_deviation", True))
                    for label, opts in params.items()})

    def accepts(self, snapshot: ObjectSnapshot) -> bool:
        return self.check_deviation.get(snapshot.label, self.default)

    def apply(self, snapshots: Iterable[ObjectSnapshot]) -> List[ObjectSnapshot]:
        return [s for s in snapshots if self.accepts(s)]
