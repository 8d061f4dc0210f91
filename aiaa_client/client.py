"""
HTTP client for the annotation (AIAA) server.
"""

import os
import json
import tempfile
import warnings
from email.parser import BytesParser
from email.policy import HTTP
from typing import Optional, Union

import requests

from . import util
from .image_processing import image_post_process, image_pre_process
from .models import Model, ModelList, ModelNotFoundError
from .util import PointSet

# Error ids of AIAAError.
SYSTEM_ERROR = 1
SERVER_ERROR = 2
RESPONSE_PARSE_ERROR = 3
INVALID_ARGS = 4

_ERROR_NAMES = {
    SYSTEM_ERROR: "System Error",
    SERVER_ERROR: "AIAA Server Error",
    RESPONSE_PARSE_ERROR: "AIAA Response Parse Error",
    INVALID_ARGS: "Invalid Arguments",
}

_API_VERSION = "v1"


class AIAAError(Exception):
    """Error raised by the client, carrying a numeric id and a description.

    Args:
        error_id: The error id, one of SYSTEM_ERROR, SERVER_ERROR, RESPONSE_PARSE_ERROR or INVALID_ARGS.
        message: Optional details about the error.
    """
    def __init__(self, error_id: int, message: Optional[str] = None):
        self.error_id = error_id
        self.message = message
        super().__init__(self.description if message is None else f"{self.description}: {message}")

    @property
    def description(self) -> str:
        return _ERROR_NAMES.get(self.error_id, "Unknown Error")


def _parse_multipart(content, content_type):
    # Parse a multipart response into its form fields and files.
    header = f"Content-Type: {content_type}\r\n\r\n".encode()
    message = BytesParser(policy=HTTP).parsebytes(header + content)
    if not message.is_multipart():
        raise AIAAError(RESPONSE_PARSE_ERROR, "Expected a multipart response.")

    fields, files = {}, {}
    for part in message.iter_parts():
        name = part.get_param("name", header="content-disposition")
        payload = part.get_payload(decode=True)
        # Nested multipart parts have no payload of their own.
        if payload is None:
            continue
        if part.get_filename() is None:
            fields[name] = payload.decode()
        else:
            files[name or part.get_filename()] = payload
    return fields, files


class Client:
    """Client for the annotation server.

    Args:
        server_uri: The server URI. If not given the AIAA_SERVER environment variable
            or 'http://0.0.0.0:5000' is used.
        timeout: The timeout for each request, in seconds.
    """
    def __init__(self, server_uri: Optional[str] = None, timeout: float = util._DEFAULT_TIMEOUT):
        self.server_uri = util.get_server_uri(server_uri)
        self.timeout = timeout
        self._session = requests.Session()

    def _url(self, endpoint):
        return f"{self.server_uri}/{_API_VERSION}/{endpoint}"

    def _request(self, method, endpoint, timeout=None, **kwargs):
        timeout = self.timeout if timeout is None else timeout
        try:
            response = self._session.request(method, self._url(endpoint), timeout=timeout, **kwargs)
        except requests.RequestException as e:
            raise AIAAError(SYSTEM_ERROR, f"{method} {self._url(endpoint)} failed: {e}")
        return response

    def _check_response(self, response):
        if not response.ok:
            raise AIAAError(SERVER_ERROR, f"{response.status_code} {response.reason}: {response.text}")

    def _json(self, response):
        try:
            return response.json()
        except ValueError as e:
            raise AIAAError(RESPONSE_PARSE_ERROR, str(e))

    def models(self) -> ModelList:
        """Get all models available on the server.

        Returns:
            The model catalog.
        """
        response = self._request("GET", "models")
        self._check_response(response)
        try:
            return ModelList.from_json(self._json(response))
        except (TypeError, ValueError) as e:
            raise AIAAError(RESPONSE_PARSE_ERROR, str(e))

    def model(self, name: str) -> Model:
        """Get a model by name.

        Args:
            name: The model name.

        Returns:
            The model.
        """
        response = self._request("GET", "models", params={"model": name})
        if response.status_code == 404:
            raise ModelNotFoundError(f"Couldn't find a model for name: {name}")
        self._check_response(response)

        try:
            models = ModelList.from_json(self._json(response))
        except (TypeError, ValueError) as e:
            raise AIAAError(RESPONSE_PARSE_ERROR, str(e))
        if len(models) == 0:
            raise ModelNotFoundError(f"Couldn't find a model for name: {name}")

        model = models.models[0]
        if model.name != name:
            warnings.warn(f"Requested model {name}, but the server returned {model.name}.")
        return model

    def _segmentation(self, model, point_set, image_path, output_path, session_id, timeout):
        params = {"points": point_set.to_json(), "result_extension": util.get_extension(output_path)}
        query = {"model": model.name}
        if session_id:
            query["session_id"] = session_id

        data = {"params": json.dumps(params)}
        if session_id:
            response = self._request("POST", "dextr3d", timeout=timeout, params=query, data=data)
        else:
            try:
                f = open(image_path, "rb")
            except OSError as e:
                raise AIAAError(INVALID_ARGS, f"Could not read the input image: {e}")
            with f:
                files = {"datapoint": (os.path.basename(image_path), f, "application/octet-stream")}
                response = self._request("POST", "dextr3d", timeout=timeout, params=query, data=data, files=files)
        self._check_response(response)

        content_type = response.headers.get("content-type", "")
        if content_type.startswith("multipart"):
            _, files = _parse_multipart(response.content, content_type)
            if len(files) == 0:
                raise AIAAError(RESPONSE_PARSE_ERROR, "The response does not contain a result image.")
            content = next(iter(files.values()))
        else:
            content = response.content

        try:
            with open(output_path, "wb") as f:
                f.write(content)
        except OSError as e:
            raise AIAAError(SYSTEM_ERROR, f"Could not write the result to {output_path}: {e}")

    def dextr3d(
        self,
        model: Model,
        point_set: PointSet,
        image_in: Optional[Union[str, os.PathLike]],
        image_out: Union[str, os.PathLike],
        pre_process: bool = True,
        session_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> int:
        """Run point based 3D annotation (DEXTR3D).

        If `pre_process` is set the input image is cropped around the points, using the padding
        and ROI of the model, before it is sent and the result is restored to the original shape.
        Otherwise the full image is sent, or only the session id if one is given.

        Args:
            model: The annotation model.
            point_set: The points, at least one.
            image_in: The input image. Can be None if a session id is given.
            image_out: The path where the result mask is written.
            pre_process: Whether to crop the input before sending it.
            session_id: The id of a session holding the image on the server.
            timeout: The timeout for the inference request in seconds. By default the timeout of the client is used.

        Returns:
            The status code, 0 on success.
        """
        if model.is_empty:
            warnings.warn("The selected model is empty.")
            return -1

        if not pre_process:
            if not session_id and not image_in:
                raise AIAAError(INVALID_ARGS, "Either an input image or a session id is required.")
            self._segmentation(model, point_set, image_in, image_out, session_id, timeout)
            return 0

        if not image_in:
            raise AIAAError(INVALID_ARGS, "An input image is required for pre-processing.")

        ext = util.get_extension(image_in)
        with tempfile.TemporaryDirectory() as tmp_dir:
            cropped_path = os.path.join(tmp_dir, f"cropped{ext}")
            result_path = os.path.join(tmp_dir, f"result{ext}")
            try:
                roi_points, crop_box, shape = image_pre_process(
                    image_in, cropped_path, point_set, model.padding, model.roi
                )
            # ImportError is raised by imageio if the reader for the format is not installed.
            except (ImportError, OSError, RuntimeError, ValueError) as e:
                raise AIAAError(INVALID_ARGS, f"Failed to pre-process {image_in}: {e}")

            self._segmentation(model, roi_points, cropped_path, result_path, None, timeout)

            try:
                image_post_process(result_path, image_out, crop_box, shape)
            except (ImportError, OSError, RuntimeError, ValueError) as e:
                raise AIAAError(RESPONSE_PARSE_ERROR, f"Failed to post-process the result: {e}")
        return 0

    def close(self) -> None:
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
