"""
Resolution of the annotation model and configuration of a single DEXTR3D request.

The functions here turn the (untyped) user input into a validated `RequestConfig`. Errors are
returned as part of `ConfigResult` and `InferenceResult` instead of being raised, so that the
command line interface only needs to report them.
"""

import time
import warnings
from dataclasses import dataclass, replace
from typing import NamedTuple, Optional, Sequence, Union

from . import util
from .client import AIAAError
from .models import ANNOTATION, Model, ModelNotFoundError
from .util import PointSet, PointSetParseError


class ErrorKind:
    """The kinds of errors that can occur when configuring or running a request."""
    USAGE = "usage"
    PARSE = "parse"
    NOT_FOUND = "not_found"
    TRANSPORT = "transport"


@dataclass(frozen=True)
class ConfigError:
    kind: str
    message: str
    error_id: Optional[int] = None

    def __str__(self):
        if self.kind == ErrorKind.TRANSPORT:
            return f"aiaa.error.{self.error_id}; description: {self.message}"
        return self.message


@dataclass
class Options:
    """The parsed command line options.

    `pad` and `roi` are None unless they were passed explicitly; only then do they
    override the values of the model.
    """
    server: Optional[str] = None
    label: Optional[str] = None
    model: Optional[str] = None
    points: Optional[str] = None
    pad: Optional[float] = None
    roi: Optional[str] = None
    image: Optional[str] = None
    session: Optional[str] = None
    crop: bool = False
    output: Optional[str] = None
    timeout: int = util._DEFAULT_TIMEOUT
    print_ts: bool = False


@dataclass(frozen=True)
class RequestConfig:
    model: Model
    point_set: PointSet
    output_path: str
    image_path: Optional[str] = None
    session_id: Optional[str] = None
    pre_process: bool = False
    timeout: int = util._DEFAULT_TIMEOUT


class ConfigResult(NamedTuple):
    config: Optional[RequestConfig] = None
    error: Optional[ConfigError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class InferenceResult(NamedTuple):
    status: int
    latency_ms: Optional[int] = None
    error: Optional[ConfigError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.status == 0


def validate_options(options: Options) -> Optional[ConfigError]:
    """Check the options before anything is sent to the server.

    Args:
        options: The options.

    Returns:
        The first error that was found or None if the options are valid.
    """
    if not options.label and not options.model:
        return ConfigError(ErrorKind.USAGE, "Either Label or Model is required")
    if not options.points:
        return ConfigError(ErrorKind.USAGE, "Pointset is empty")
    if not options.image and not options.session:
        return ConfigError(
            ErrorKind.USAGE, "Input Image file is missing (Either session-id or input image should be provided)"
        )
    if options.crop and not options.image:
        return ConfigError(ErrorKind.USAGE, "Input Image file is missing when (preProcess = True)")
    if not options.output:
        return ConfigError(ErrorKind.USAGE, "Output Image file is missing")
    if options.roi is not None:
        try:
            util.string_to_point(options.roi)
        except ValueError as e:
            return ConfigError(ErrorKind.USAGE, str(e))
    return None


def resolve_model(client, model_name: Optional[str] = None, label: Optional[str] = None) -> Model:
    """Find the annotation model, either by name or by label.

    Args:
        client: The client, see `aiaa_client.client.Client`.
        model_name: The model name. If given the model is requested by name.
        label: The label. Used to select a model from the catalog if no name is given.

    Returns:
        The model.
    """
    if not model_name and not label:
        raise ValueError("Either a model name or a label is required.")

    if model_name:
        model = client.model(model_name)
    else:
        catalog = client.models()
        model = catalog.get_matching_model(label, ANNOTATION)
        if model.is_empty:
            raise ModelNotFoundError(
                f"Couldn't find a model for name: ; label: {label}. "
                f"Available labels: {', '.join(catalog.get_labels())}"
            )

    if model.is_empty:
        raise ModelNotFoundError(f"Couldn't find a model for name: {model_name}; label: {label}")
    return model


def apply_overrides(
    model: Model,
    model_name: Optional[str] = None,
    padding: Optional[float] = None,
    roi: Optional[Union[str, Sequence[int]]] = None,
) -> Model:
    """Apply the user overrides to a model.

    The overrides are not validated, e.g. a negative padding is passed on as it is.

    Args:
        model: The resolved model. It is not changed.
        model_name: The model name requested by the user, replaces the name of the model.
        padding: The padding.
        roi: The ROI size, either as string like '128x128x128' or as three values.

    Returns:
        The model with overrides.
    """
    overrides = {}
    if model_name:
        overrides["name"] = model_name
    if padding is not None:
        overrides["padding"] = float(padding)
    if roi is not None:
        overrides["roi"] = util.as_roi(roi)
    return replace(model, **overrides)


def configure_request(options: Options, client) -> ConfigResult:
    """Validate the options, resolve the model and build the request.

    Args:
        options: The options.
        client: The client.

    Returns:
        The result, containing either the request configuration or the error.
    """
    error = validate_options(options)
    if error is not None:
        return ConfigResult(error=error)

    try:
        point_set = PointSet.from_json(options.points)
    except PointSetParseError as e:
        return ConfigResult(error=ConfigError(ErrorKind.PARSE, str(e)))

    try:
        model = resolve_model(client, model_name=options.model, label=options.label)
    except ModelNotFoundError as e:
        return ConfigResult(error=ConfigError(ErrorKind.NOT_FOUND, str(e)))
    except AIAAError as e:
        return ConfigResult(error=ConfigError(ErrorKind.TRANSPORT, str(e), error_id=e.error_id))

    model = apply_overrides(model, model_name=options.model, padding=options.pad, roi=options.roi)

    session_id = options.session or None
    if options.crop and session_id:
        warnings.warn(f"The session {session_id} is ignored because the input is pre-processed.")
        session_id = None

    config = RequestConfig(
        model=model,
        point_set=point_set,
        output_path=options.output,
        image_path=options.image or None,
        session_id=session_id,
        pre_process=options.crop,
        timeout=options.timeout,
    )
    return ConfigResult(config=config)


def dispatch(client, config: RequestConfig) -> InferenceResult:
    """Run the request. This makes exactly one inference call.

    Args:
        client: The client.
        config: The request configuration.

    Returns:
        The result, containing the status code, the latency in milliseconds and the error if one occurred.
    """
    start = time.time()
    try:
        status = client.dextr3d(
            config.model, config.point_set, config.image_path, config.output_path,
            pre_process=config.pre_process, session_id=config.session_id, timeout=config.timeout,
        )
    except AIAAError as e:
        latency = int(round((time.time() - start) * 1000))
        error = ConfigError(ErrorKind.TRANSPORT, str(e), error_id=e.error_id)
        return InferenceResult(status=-1, latency_ms=latency, error=error)

    latency = int(round((time.time() - start) * 1000))
    return InferenceResult(status=status, latency_ms=latency)
