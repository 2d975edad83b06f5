from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, MutableMapping, Optional

from ca_reco.criteria.base import CriteriaRegistry
from ca_reco.errors import CriteriaConfigError

try:
    import orjson as _orjson
except Exception:  # pragma: no cover
    _orjson = None

logger = logging.getLogger(__name__)

_SECTIONS: Dict[str, tuple] = {
    "builder": ("max_skipped_layers", "max_link_distance", "target_arity"),
    "automaton": ("max_rounds", "count_skipped_layers", "clean_connections", "clean_between_levels"),
    "extractor": ("min_state", "min_hits", "max_candidates"),
}


@dataclass(frozen=True)
class CAConfig:
    r"""
    Validated configuration of one :class:`~ca_reco.track_finder.TrackFinder`.

    JSON layout
    -----------
    .. code-block:: json

        {
          "criteria": {
            "1": [{"name": "Crit2_DeltaPhi", "deltaPhiMax": 5.0}],
            "2": [{"name": "Crit3_3DAngle", "angleMax": 10.0}],
            "3": [{"name": "Crit4_NoZigZag", "prodMin": -1.0, "prodMax": 1e6}]
          },
          "builder":   {"max_skipped_layers": 1, "max_link_distance": null},
          "automaton": {"max_rounds": 100, "count_skipped_layers": true},
          "extractor": {"min_state": 0, "min_hits": 4},
          "diagnostics": false
        }

    Keys under ``criteria`` are segment arities (hits per segment); each list
    entry names a criterion from :data:`ca_reco.criteria.CRITERIA` plus its
    bounds. All sections are optional.
    """
    criteria: Mapping[str, List[Mapping[str, Any]]] = field(default_factory=dict)
    max_skipped_layers: int = 0
    max_link_distance: Optional[float] = None
    target_arity: Optional[int] = None
    max_rounds: int = 100
    count_skipped_layers: bool = True
    clean_connections: bool = False
    clean_between_levels: bool = False
    min_state: int = 0
    min_hits: int = 3
    max_candidates: Optional[int] = None
    diagnostics: bool = False

    def __post_init__(self) -> None:
        if self.max_skipped_layers < 0:
            raise CriteriaConfigError("builder.max_skipped_layers must be >= 0")
        if self.max_rounds < 1:
            raise CriteriaConfigError("automaton.max_rounds must be >= 1")
        if self.target_arity is not None and self.target_arity < 1:
            raise CriteriaConfigError("builder.target_arity must be >= 1")

    def registry(self) -> CriteriaRegistry:
        """Build a fresh :class:`CriteriaRegistry` (validates names, bounds and arities)."""
        return CriteriaRegistry.from_config(self.criteria)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "CAConfig":
        r"""
        Flatten the sectioned layout into a :class:`CAConfig`.

        Raises
        ------
        CriteriaConfigError
            On unknown sections or keys, or if the criteria block does not
            validate.
        """
        kwargs: MutableMapping[str, Any] = {}
        if not isinstance(raw, Mapping):
            raise CriteriaConfigError(f"config must be a JSON object, got {type(raw).__name__}")
        for key, value in raw.items():
            if key in _SECTIONS or key == "criteria":
                if not isinstance(value, Mapping):
                    raise CriteriaConfigError(
                        f"config section {key!r} must be an object, got {type(value).__name__}"
                    )
            if key == "criteria":
                kwargs["criteria"] = {str(k): [dict(b) for b in v] for k, v in value.items()}
            elif key == "diagnostics":
                kwargs["diagnostics"] = bool(value)
            elif key in _SECTIONS:
                for sub, v in value.items():
                    if sub not in _SECTIONS[key]:
                        raise CriteriaConfigError(f"unknown key {key}.{sub}")
                    kwargs[sub] = v
            else:
                raise CriteriaConfigError(f"unknown config section {key!r}")
        cfg = cls(**kwargs)
        cfg.registry()  # fail at setup time, not mid-event
        return cfg


def load_config(config_path: Path) -> CAConfig:
    r"""
    Load a JSON configuration with optional :mod:`orjson` acceleration.

    Raises
    ------
    ValueError
        If the file cannot be parsed.
    CriteriaConfigError
        If it parses but does not validate.
    """
    config_path = Path(config_path)
    try:
        if _orjson is not None:
            raw = _orjson.loads(config_path.read_bytes())
        else:
            with config_path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
    except (OSError, ValueError) as e:
        raise ValueError(f"Failed to parse {config_path}: {e}") from e
    logger.debug("Loaded config from %s", config_path)
    return CAConfig.from_dict(raw)
