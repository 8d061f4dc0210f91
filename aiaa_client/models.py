"""
The model descriptors reported by the annotation server and the matching of labels to models.
"""

import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from . import util

# The model types known by the server. Point based annotation (DEXTR3D) requires an 'annotation' model,
# 'segmentation' models run fully automatically and 'deepgrow' models work with clicks.
ANNOTATION = "annotation"
SEGMENTATION = "segmentation"
DEEPGROW = "deepgrow"
_MODEL_TYPES = (ANNOTATION, SEGMENTATION, DEEPGROW)


class ModelNotFoundError(Exception):
    """Raised when no model matches the requested name or label."""


@dataclass(frozen=True)
class Model:
    """Description of an inference model on the server.

    The empty model (with an empty name) is returned when no model could be matched.
    """
    name: str = ""
    labels: Tuple[str, ...] = field(default_factory=tuple)
    type: str = ""
    padding: float = util._DEFAULT_PADDING
    roi: Tuple[int, int, int] = util._DEFAULT_ROI
    sigma: float = 3.0
    description: str = ""
    version: str = ""

    @property
    def is_annotation(self) -> bool:
        return self.type == ANNOTATION

    @property
    def is_empty(self) -> bool:
        return not self.name

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Model":
        """Create the model from the JSON description returned by the server.

        Args:
            data: The model description.

        Returns:
            The model.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Invalid model description: {data}")

        labels = data.get("labels", [])
        if isinstance(labels, str):
            labels = [labels]

        model_type = str(data.get("type", "")).lower()
        if model_type and model_type not in _MODEL_TYPES:
            warnings.warn(f"Model {data.get('name')} has an unknown type {model_type}.")

        roi = data.get("roi")
        roi = util._DEFAULT_ROI if roi is None else util.as_roi(roi)
        padding = data.get("padding")
        padding = util._DEFAULT_PADDING if padding is None else float(padding)

        return cls(
            name=str(data.get("name", "")),
            labels=tuple(str(label) for label in labels),
            type=model_type,
            padding=padding,
            roi=roi,
            sigma=float(data.get("sigma", 3.0)),
            description=str(data.get("description", "")),
            version=str(data.get("version", "")),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "labels": list(self.labels),
            "type": self.type,
            "padding": self.padding,
            "roi": list(self.roi),
            "sigma": self.sigma,
            "description": self.description,
            "version": self.version,
        }


class ModelList:
    """The catalog of models available on the server.

    Args:
        models: The models.
    """
    def __init__(self, models: Optional[Iterable[Model]] = None):
        self.models: List[Model] = [] if models is None else list(models)

    @classmethod
    def from_json(cls, data: List[Dict[str, Any]]) -> "ModelList":
        if isinstance(data, dict):
            data = [data]
        return cls([Model.from_json(model) for model in data])

    def get_matching_model(self, label: str, model_type: str = ANNOTATION) -> Model:
        """Find the model for a label.

        Only models of the given type are considered. An exact label match is preferred,
        then a case-insensitive match and finally a model whose name contains the label.
        Within each of these the first model in the catalog wins.

        Args:
            label: The label, e.g. 'liver' or 'spleen'.
            model_type: The required model type.

        Returns:
            The matching model or the empty model if nothing matches.
        """
        if not label:
            return Model()

        candidates = [model for model in self.models if model.type == model_type]
        lower = label.lower()
        matchers = (
            lambda model: label in model.labels,
            lambda model: lower in (model_label.lower() for model_label in model.labels),
            lambda model: lower in model.name.lower(),
        )
        for matcher in matchers:
            for model in candidates:
                if matcher(model):
                    return model
        return Model()

    def get_labels(self) -> List[str]:
        """Return all labels in the catalog, in order and without duplicates."""
        labels = []
        for model in self.models:
            labels.extend(label for label in model.labels if label not in labels)
        return labels

    def __len__(self) -> int:
        return len(self.models)

    def __iter__(self) -> Iterator[Model]:
        return iter(self.models)

    def __repr__(self):
        return f"ModelList({[model.name for model in self.models]})"
