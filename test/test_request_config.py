import unittest

from aiaa_client._test_util import FakeClient, get_test_catalog
from aiaa_client.client import SERVER_ERROR, SYSTEM_ERROR
from aiaa_client.models import Model, ModelNotFoundError
from aiaa_client.request_config import (
    ErrorKind, Options, apply_overrides, configure_request, dispatch, resolve_model, validate_options
)
from aiaa_client.util import PointSet


class TestRequestConfig(unittest.TestCase):

    def _get_options(self, **kwargs):
        options = dict(label="liver", points="[[1,2,3]]", image="in.nii", output="out.nii")
        options.update(kwargs)
        return Options(**options)

    def test_validate_options(self):
        self.assertIsNone(validate_options(self._get_options()))
        self.assertIsNone(validate_options(self._get_options(label=None, model="annotation_ct_liver")))
        self.assertIsNone(validate_options(self._get_options(image=None, session="abc")))

        invalid = [
            dict(label=None, model=None),
            dict(label="", model=""),
            dict(points=""),
            dict(image=None, session=None),
            dict(image=None, session="abc", crop=True),
            dict(output=None),
            dict(roi="64x64"),
        ]
        messages = []
        for kwargs in invalid:
            error = validate_options(self._get_options(**kwargs))
            self.assertIsNotNone(error)
            self.assertEqual(error.kind, ErrorKind.USAGE)
            messages.append(error.message)

        # Each condition has its own message, except for the two variants of a missing label / model.
        self.assertEqual(len(set(messages)), len(messages) - 1)

    def test_validation_does_not_use_the_client(self):
        for kwargs in (dict(label=None), dict(points=None), dict(image=None), dict(output=None)):
            client = FakeClient(get_test_catalog())
            result = configure_request(self._get_options(**kwargs), client)
            self.assertFalse(result.ok)
            self.assertEqual(client.n_requests, 0)

        client = FakeClient(get_test_catalog())
        result = configure_request(self._get_options(points="[[1,2]]"), client)
        self.assertEqual(result.error.kind, ErrorKind.PARSE)
        self.assertEqual(client.n_requests, 0)

    def test_resolve_model(self):
        client = FakeClient(get_test_catalog())
        self.assertEqual(resolve_model(client, label="liver").name, "annotation_ct_liver")
        self.assertEqual(resolve_model(client, model_name="annotation_ct_spleen").name, "annotation_ct_spleen")

        # The model name takes precedence over the label.
        model = resolve_model(client, model_name="annotation_ct_spleen", label="liver")
        self.assertEqual(model.name, "annotation_ct_spleen")

        with self.assertRaises(ModelNotFoundError):
            resolve_model(client, label="kidney")
        with self.assertRaises(ModelNotFoundError):
            resolve_model(client, model_name="ghost")
        with self.assertRaises(ValueError):
            resolve_model(client)

    def test_apply_overrides(self):
        model = Model(name="annotation_ct_liver", labels=("liver",), type="annotation")

        self.assertEqual(apply_overrides(model), model)

        overridden = apply_overrides(model, model_name="my_liver", padding=15, roi="64x64x64")
        self.assertEqual(overridden.name, "my_liver")
        self.assertEqual(overridden.padding, 15.0)
        self.assertEqual(overridden.roi, (64, 64, 64))

        # The original model is not changed.
        self.assertEqual(model.name, "annotation_ct_liver")
        self.assertEqual(model.padding, 20.0)
        self.assertEqual(model.roi, (128, 128, 128))

        # Overrides are not validated.
        overridden = apply_overrides(model, padding=-5.0, roi=(16, 32, 64))
        self.assertEqual(overridden.padding, -5.0)
        self.assertEqual(overridden.roi, (16, 32, 64))

    def test_configure_request(self):
        catalog = get_test_catalog()
        client = FakeClient(catalog)
        result = configure_request(self._get_options(), client)
        self.assertTrue(result.ok)

        config = result.config
        self.assertEqual(config.model.name, "annotation_ct_liver")
        self.assertEqual(config.model.padding, 20.0)
        self.assertEqual(config.model.roi, (128, 128, 128))
        self.assertEqual(config.point_set, PointSet([[1, 2, 3]]))
        self.assertEqual(config.image_path, "in.nii")
        self.assertEqual(config.output_path, "out.nii")
        self.assertIsNone(config.session_id)
        self.assertFalse(config.pre_process)
        self.assertEqual(config.timeout, 60)

        # The model defaults are kept unless they are overridden.
        result = configure_request(self._get_options(label="spleen"), client)
        self.assertEqual(result.config.model.padding, 10.0)
        self.assertEqual(result.config.model.roi, (96, 96, 96))

        result = configure_request(self._get_options(label="spleen", pad=15.0, roi="64x64x64"), client)
        self.assertEqual(result.config.model.padding, 15.0)
        self.assertEqual(result.config.model.roi, (64, 64, 64))
        self.assertEqual(client.catalog.models[2].padding, 10.0)

    def test_configure_request_keeps_the_requested_name(self):
        # The server knows the model under another canonical name.
        client = FakeClient(get_test_catalog())
        client.model = lambda name: Model(name="clara_ct_liver_v2", type="annotation")
        result = configure_request(self._get_options(label=None, model="annotation_ct_liver"), client)
        self.assertTrue(result.ok)
        self.assertEqual(result.config.model.name, "annotation_ct_liver")

    def test_configure_request_session(self):
        client = FakeClient(get_test_catalog())
        result = configure_request(self._get_options(image=None, session="abc"), client)
        self.assertEqual(result.config.session_id, "abc")
        self.assertIsNone(result.config.image_path)

        with self.assertWarns(UserWarning):
            result = configure_request(self._get_options(session="abc", crop=True), client)
        self.assertIsNone(result.config.session_id)
        self.assertTrue(result.config.pre_process)

    def test_configure_request_errors(self):
        result = configure_request(self._get_options(label=None, model="ghost"), FakeClient([]))
        self.assertEqual(result.error.kind, ErrorKind.NOT_FOUND)
        self.assertIsNone(result.config)

        result = configure_request(self._get_options(label="kidney"), FakeClient(get_test_catalog()))
        self.assertEqual(result.error.kind, ErrorKind.NOT_FOUND)
        self.assertIn("kidney", str(result.error))

        result = configure_request(self._get_options(), FakeClient(get_test_catalog(), fail_with=SERVER_ERROR))
        self.assertEqual(result.error.kind, ErrorKind.TRANSPORT)
        self.assertEqual(result.error.error_id, SERVER_ERROR)
        self.assertTrue(str(result.error).startswith(f"aiaa.error.{SERVER_ERROR}; description:"))

    def test_dispatch(self):
        client = FakeClient(get_test_catalog())
        config = configure_request(self._get_options(crop=True), client).config

        result = dispatch(client, config)
        self.assertTrue(result.ok)
        self.assertEqual(result.status, 0)
        self.assertGreaterEqual(result.latency_ms, 0)
        self.assertEqual(len(client.calls), 1)

        call = client.calls[0]
        self.assertEqual(call["model"], config.model)
        self.assertEqual(call["timeout"], 60)
        self.assertEqual(call["point_set"], config.point_set)
        self.assertEqual(call["image_in"], "in.nii")
        self.assertEqual(call["image_out"], "out.nii")
        self.assertTrue(call["pre_process"])
        self.assertIsNone(call["session_id"])

    def test_dispatch_uses_the_request_timeout(self):
        client = FakeClient(get_test_catalog())
        config = configure_request(self._get_options(timeout=5), client).config
        self.assertEqual(config.timeout, 5)

        dispatch(client, config)
        self.assertEqual(client.calls[0]["timeout"], 5)

    def test_dispatch_failure(self):
        client = FakeClient(get_test_catalog(), status=3)
        config = configure_request(self._get_options(), client).config
        result = dispatch(client, config)
        self.assertFalse(result.ok)
        self.assertEqual(result.status, 3)
        self.assertIsNone(result.error)

        client = FakeClient(get_test_catalog(), inference_error=SYSTEM_ERROR)
        result = dispatch(client, config)
        self.assertEqual(result.status, -1)
        self.assertEqual(result.error.kind, ErrorKind.TRANSPORT)
        self.assertEqual(len(client.calls), 1)


if __name__ == "__main__":
    unittest.main()
