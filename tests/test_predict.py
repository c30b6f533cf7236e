import numpy as np
import pytest
from conftest import FakeHostingService

from abalone_pipeline import dataset as ds
from abalone_pipeline import predict as pr
from abalone_pipeline import preprocess as pp
from abalone_pipeline.endpoint import EndpointHandle
from abalone_pipeline.errors import ParseError, RangeError


@pytest.fixture
def feats(sample_csv):
    return pp.features(pp.clean(ds.parse(sample_csv)))


def test_parse_predictions_comma_separated():
    values = pr.parse_predictions("9.5,10.25,7", expected=3)
    np.testing.assert_allclose(values, [9.5, 10.25, 7.0])


def test_parse_predictions_accepts_bytes_and_newlines():
    values = pr.parse_predictions(b"9.5\n10.25\n", expected=2)
    np.testing.assert_allclose(values, [9.5, 10.25])


def test_parse_predictions_non_numeric():
    with pytest.raises(ParseError):
        pr.parse_predictions("9.5,oops", expected=2)


def test_parse_predictions_count_mismatch():
    with pytest.raises(ParseError, match="2 predictions for 3 rows"):
        pr.parse_predictions("9.5,10.25", expected=3)


def test_serialize_rows_has_no_header_or_index(feats):
    payload = pr.serialize_rows(feats.iloc[:2])
    lines = payload.split("\n")
    assert len(lines) == 2
    assert len(lines[0].split(",")) == len(feats.columns)
    assert lines[0].startswith("0,1,0,0.455")


@pytest.mark.parametrize("batch_size", [1, 5, 19])
def test_predict_returns_one_prediction_per_row(feats, batch_size):
    service = FakeHostingService()
    result = pr.predict(service, EndpointHandle("ep-1"), feats, batch_size=batch_size)

    assert len(result) == batch_size
    assert result.columns[0] == pr.PREDICTION_COLUMN
    assert list(result.columns[1:]) == list(feats.columns)
    assert list(result.index) == list(feats.index[:batch_size])
    [(name, _, content_type)] = service.invocations
    assert (name, content_type) == ("ep-1", "text/csv")


def test_predict_batch_larger_than_input(feats):
    service = FakeHostingService()
    with pytest.raises(RangeError):
        pr.predict(service, EndpointHandle("ep-1"), feats, batch_size=len(feats) + 1)
    assert service.invocations == []


def test_predict_bad_response(feats):
    service = FakeHostingService(response="1.0,2.0")
    with pytest.raises(ParseError):
        pr.predict(service, EndpointHandle("ep-1"), feats, batch_size=3)
