import numpy as np
import pytest

from trainhog.detector import DenseDetector, DetectorVectorSynthesizer
from trainhog.errors import DimensionMismatchWarning, EmptyModelError, UnsupportedKernelError
from trainhog.training import SupportVector, TrainedModel


@pytest.fixture
def synthesizer() -> DetectorVectorSynthesizer:
    return DetectorVectorSynthesizer()


def test_single_support_vector(synthesizer, make_model):
    model = make_model([(0.5, [(1, 2.0), (3, 4.0)])], bias=-0.25)

    detector = synthesizer.synthesize(model)

    assert detector.weights.tolist() == [1.0, 0.0, 2.0]
    assert detector.bias == -0.25
    assert len(detector) == 3
    assert detector.skipped_entries == 0


def test_support_vectors_accumulate(synthesizer, make_model):
    model = make_model([
        (2.0, [(1, 1.0)]),
        (-1.0, [(1, 3.0)]),
    ])

    detector = synthesizer.synthesize(model)

    assert detector.weights.tolist() == [-1.0]


def test_empty_model_is_rejected(synthesizer, make_model):
    with pytest.raises(EmptyModelError):
        synthesizer.synthesize(make_model([]))


def test_empty_first_support_vector_is_rejected(synthesizer, make_model):
    model = make_model([(1.0, []), (1.0, [(1, 1.0)])])
    with pytest.raises(EmptyModelError):
        synthesizer.synthesize(model)


def test_non_linear_kernel_is_rejected(synthesizer, make_model):
    model = make_model([(1.0, [(1, 1.0)])], kernel='rbf')
    with pytest.raises(UnsupportedKernelError):
        synthesizer.synthesize(model)


def test_out_of_range_entries_are_dropped_with_warning(synthesizer, make_model):
    model = make_model([
        (1.0, [(1, 1.0), (2, 1.0)]),
        (2.0, [(1, 1.0), (3, 5.0)]),
    ])

    with pytest.warns(DimensionMismatchWarning):
        detector = synthesizer.synthesize(model)

    assert len(detector) == 2
    assert detector.weights.tolist() == [3.0, 1.0]
    assert detector.skipped_entries == 1


def test_dimension_from_caller(make_model):
    model = make_model([(1.0, [(1, 1.0), (2, 2.0)])])

    detector = DetectorVectorSynthesizer(dimension=5).synthesize(model)
    assert detector.weights.tolist() == [1.0, 2.0, 0.0, 0.0, 0.0]

    detector = DetectorVectorSynthesizer(dimension=5).synthesize(model, dimension=3)
    assert len(detector) == 3


def test_from_config():
    assert DetectorVectorSynthesizer.from_config({'dimension': 3780}).dimension == 3780
    assert DetectorVectorSynthesizer.from_config({}).dimension is None


def test_result_is_independent_of_model(synthesizer, make_model):
    model = make_model([(1.0, [(1, 1.0), (2, 2.0)])])

    detector = synthesizer.synthesize(model)

    assert not np.shares_memory(detector.weights, model.support_vectors[0].values)
    with pytest.raises(ValueError):
        detector.weights[0] = 10.0


def test_support_vector_owns_read_only_arrays(synthesizer):
    indices = np.array([1, 2])
    values = np.array([1.0, 2.0])
    sv = SupportVector(coefficient=1.0, indices=indices, values=values)

    values[0] = 100.0
    with pytest.raises(ValueError):
        sv.values[1] = 0.0

    model = TrainedModel(support_vectors=(sv,), bias=0.0, kernel='linear', backend='kernel', n_features=2)
    np.testing.assert_array_equal(synthesizer.synthesize(model).weights, [1.0, 2.0])


def test_bit_reproducible(synthesizer, make_model):
    rng = np.random.RandomState(3)
    svs = [(float(rng.randn()), [(i, float(rng.randn())) for i in range(1, 51)]) for _ in range(30)]
    model = make_model(svs, bias=0.1)

    first = synthesizer.synthesize(model)
    second = synthesizer.synthesize(model)

    assert first.weights.tobytes() == second.weights.tobytes()


def test_support_vector_order_only_affects_rounding(synthesizer, make_model):
    rng = np.random.RandomState(4)
    svs = [(float(rng.randn()), [(i, float(rng.randn())) for i in range(1, 11)]) for _ in range(20)]

    forward = synthesizer.synthesize(make_model(svs))
    backward = synthesizer.synthesize(make_model(list(reversed(svs))))

    np.testing.assert_allclose(forward.weights, backward.weights, rtol=1e-12, atol=1e-12)


class TestDenseDetector:

    @pytest.fixture
    def detector(self) -> DenseDetector:
        return DenseDetector(weights=[1.0, -2.0, 0.5], bias=0.25)

    def test_score(self, detector):
        assert detector.score([1.0, 1.0, 2.0]) == pytest.approx(0.25)

    def test_score_shape_mismatch(self, detector):
        with pytest.raises(ValueError):
            detector.score([1.0, 1.0])

    def test_score_sparse_ignores_unknown_indices(self, detector):
        assert detector.score_sparse([(1, 1.0), (3, 2.0), (9, 100.0)]) == pytest.approx(2.25)

    def test_score_many_dense_and_sparse(self, detector):
        import scipy.sparse as sp

        dense = np.array([[1.0, 1.0, 2.0], [0.0, 1.0, 0.0]])
        expected = [0.25, -1.75]

        np.testing.assert_allclose(detector.score_many(dense), expected)
        np.testing.assert_allclose(detector.score_many(sp.csr_matrix(dense)), expected)

    def test_as_hog_detector(self, detector):
        vector = detector.as_hog_detector()

        assert vector.dtype == np.float32
        assert vector.tolist() == [1.0, -2.0, 0.5, 0.25]
