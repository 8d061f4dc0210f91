from .client import AIAAError
from .models import Model, ModelList, ModelNotFoundError


class FakeClient:
    """Client that serves a fixed model catalog and records the inference calls, for testing."""

    def __init__(self, models=None, status=0, fail_with=None, inference_error=None):
        self.catalog = ModelList(models)
        self.status = status
        self.fail_with = fail_with
        self.inference_error = inference_error
        self.calls = []
        self.n_requests = 0

    def models(self):
        self.n_requests += 1
        if self.fail_with is not None:
            raise AIAAError(self.fail_with)
        return self.catalog

    def model(self, name):
        self.n_requests += 1
        if self.fail_with is not None:
            raise AIAAError(self.fail_with)
        for model in self.catalog:
            if model.name == name:
                return model
        raise ModelNotFoundError(f"Couldn't find a model for name: {name}")

    def dextr3d(self, model, point_set, image_in, image_out, pre_process=True, session_id=None, timeout=None):
        self.calls.append(
            dict(model=model, point_set=point_set, image_in=image_in, image_out=image_out,
                 pre_process=pre_process, session_id=session_id, timeout=timeout)
        )
        if self.inference_error is not None:
            raise AIAAError(self.inference_error, "Read timed out.")
        return self.status

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def get_test_catalog():
    """Utility function to create a small model catalog."""
    return [
        Model(name="segmentation_ct_liver", labels=("liver",), type="segmentation"),
        Model(name="annotation_ct_liver", labels=("liver",), type="annotation"),
        Model(name="annotation_ct_spleen", labels=("Spleen",), type="annotation", padding=10.0, roi=(96, 96, 96)),
    ]
