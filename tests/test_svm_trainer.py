import numpy as np
import pytest
import scipy.sparse as sp

from trainhog.data import SparseVectorParser, format_real
from trainhog.detector import DetectorVectorSynthesizer
from trainhog.errors import TrainingFailedError, UnsupportedKernelError
from trainhog.training import (
    KernelSVMBackend,
    RegressionSVMBackend,
    SVMTrainer,
    TrainingParameters,
    create_backend,
)


def dense(matrix) -> np.ndarray:
    return matrix.toarray() if sp.issparse(matrix) else np.asarray(matrix)


@pytest.fixture
def kernel_trainer(tmp_path) -> SVMTrainer:
    return SVMTrainer({'svm': {'backend': 'kernel', 'C': 1.0}}, models_dir=tmp_path)


@pytest.fixture
def regression_trainer(tmp_path) -> SVMTrainer:
    return SVMTrainer({'svm': {'backend': 'regression', 'C': 1.0}}, models_dir=tmp_path)


def test_default_backend_is_regression():
    trainer = SVMTrainer({})
    assert trainer.backend_name == 'regression'
    assert trainer.parameters == TrainingParameters()


def test_unknown_backend():
    with pytest.raises(ValueError):
        create_backend('svmlight')


def test_kernel_backend_model(kernel_trainer, separable_problem):
    model = kernel_trainer.train(separable_problem)

    assert model.backend == 'kernel'
    assert model.kernel == 'linear'
    assert model.n_features == 4
    assert model.classes == (-1.0, 1.0)
    assert 0 < model.n_support_vectors <= len(separable_problem)
    assert model.parameters['gamma'] == 0.25

    estimator = model.estimator
    for sv, sample_index in zip(model.support_vectors, estimator.support_):
        assert sv.features == separable_problem[int(sample_index)].features
    assert model.bias == pytest.approx(float(estimator.intercept_[0]))


@pytest.mark.parametrize("trainer_fixture", ["kernel_trainer", "regression_trainer"])
def test_detector_matches_linear_decision_function(request, trainer_fixture, separable_problem):
    trainer = request.getfixturevalue(trainer_fixture)
    model = trainer.train(separable_problem)

    detector = DetectorVectorSynthesizer().synthesize(model)

    X = separable_problem.to_csr()
    estimator = model.estimator
    np.testing.assert_allclose(detector.weights, dense(estimator.coef_).ravel(), rtol=1e-9, atol=1e-12)
    if isinstance(trainer.backend, KernelSVMBackend):
        expected = estimator.decision_function(X)
    else:
        expected = estimator.predict(X)
    np.testing.assert_allclose(detector.score_many(X), expected, rtol=1e-9, atol=1e-9)
    assert np.all(np.sign(detector.score_many(X)) == separable_problem.labels)


def test_predict_label(kernel_trainer, separable_problem):
    model = kernel_trainer.train(separable_problem)

    label, probability = kernel_trainer.predict(model, [(1, 2.0), (2, 2.0), (3, 1.0), (4, -1.0)])

    assert label == 1.0
    assert probability is None


def test_predict_ignores_unknown_features(regression_trainer, separable_problem):
    model = regression_trainer.train(separable_problem)

    label, _ = regression_trainer.predict(model, [(1, -2.0), (2, -2.0), (3, -1.0), (4, 1.0), (99, 5.0)])

    assert label < 0


def test_predict_with_probability(separable_problem):
    trainer = SVMTrainer({'svm': {'backend': 'kernel', 'C': 1.0, 'probability': True}})
    model = trainer.train(separable_problem)

    assert model.probability_calibration is not None

    label, probability = trainer.predict(model, separable_problem[0])
    assert label == separable_problem[0].label
    assert 0.5 < probability <= 1.0


def test_regression_backend_rejects_probability(separable_problem):
    trainer = SVMTrainer({'svm': {'backend': 'regression', 'probability': True}})
    with pytest.raises(TrainingFailedError):
        trainer.train(separable_problem)


def test_kernel_backend_needs_two_classes():
    problem = SparseVectorParser().parse(["1 1:1.0", "-1 1:-1.0", "0.5 1:0.2"])
    with pytest.raises(TrainingFailedError):
        KernelSVMBackend().train(problem, TrainingParameters(C=1.0))


def test_empty_problem_is_rejected():
    problem = SparseVectorParser().parse([])
    with pytest.raises(TrainingFailedError):
        RegressionSVMBackend().train(problem, TrainingParameters())


def test_invalid_parameters_are_rejected(kernel_trainer, separable_problem):
    with pytest.raises(TrainingFailedError):
        kernel_trainer.train(separable_problem, TrainingParameters(C=-1.0))


def test_non_convergence_is_an_error(separable_problem):
    trainer = SVMTrainer({'svm': {'backend': 'kernel', 'C': 1.0, 'max_iter': 1}})
    with pytest.raises(TrainingFailedError, match="converge"):
        trainer.train(separable_problem)


def test_precomputed_mode_must_match_kernel(kernel_trainer):
    problem = SparseVectorParser(precomputed=True).parse(["1 0:1 1:1.0 2:0.0", "-1 0:2 1:0.0 2:1.0"])
    with pytest.raises(TrainingFailedError):
        kernel_trainer.train(problem)


def test_non_linear_model_cannot_become_a_detector(separable_problem):
    trainer = SVMTrainer({'svm': {'backend': 'kernel', 'kernel': 'rbf', 'C': 1.0}})
    model = trainer.train(separable_problem)

    assert model.kernel == 'rbf'
    with pytest.raises(UnsupportedKernelError):
        DetectorVectorSynthesizer().synthesize(model)


def test_precomputed_kernel(separable_problem):
    features = separable_problem.to_csr().toarray()
    gram = features @ features.T
    lines = []
    for i, label in enumerate(separable_problem.labels):
        parts = [format_real(label), f"0:{i + 1}"]
        parts.extend(f"{j + 1}:{format_real(v)}" for j, v in enumerate(gram[i]))
        lines.append(" ".join(parts))
    problem = SparseVectorParser(precomputed=True).parse(lines)

    trainer = SVMTrainer({'svm': {'backend': 'kernel', 'kernel': 'precomputed', 'C': 1.0}})
    model = trainer.train(problem)

    assert model.serials.tolist() == list(range(1, len(problem) + 1))
    for sample in (problem[0], problem[1]):
        label, _ = trainer.predict(model, sample)
        assert label == sample.label


@pytest.mark.filterwarnings("error::FutureWarning")
def test_kernel_estimator_built_without_probability_switch(separable_problem):
    trainer = SVMTrainer({'svm': {'backend': 'kernel', 'C': 1.0, 'probability': False}})

    model = trainer.train(separable_problem)

    assert model.probability_calibration is None
    assert model.estimator.get_params().get('probability', False) is False


def test_probabilities_of_both_classes(separable_problem):
    trainer = SVMTrainer({'svm': {'backend': 'kernel', 'C': 1.0, 'probability': True}})
    model = trainer.train(separable_problem)

    a, b = model.probability_calibration
    assert a < 0
    for sample in (separable_problem[0], separable_problem[1]):
        label, probability = trainer.predict(model, sample)
        assert label == sample.label
        assert 0.5 < probability <= 1.0


def test_support_vectors_are_read_only(kernel_trainer, separable_problem):
    model = kernel_trainer.train(separable_problem)
    sv = model.support_vectors[0]

    with pytest.raises(ValueError):
        sv.values[0] = 0.0
    with pytest.raises(ValueError):
        sv.indices[0] = 7
