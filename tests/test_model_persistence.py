import json

import joblib
import numpy as np
import pytest

from trainhog.detector import DetectorVectorSynthesizer
from trainhog.errors import PersistenceError
from trainhog.training import ModelPersistence, SVMTrainer
from trainhog.training.model_persistence import PACKAGE_FORMAT


@pytest.fixture
def persistence(tmp_path) -> ModelPersistence:
    return ModelPersistence(tmp_path / "models")


def test_round_trip_hand_built_model(persistence, tmp_path, make_model):
    model = make_model([(0.5, [(1, 2.0), (3, 4.0)]), (-0.25, [(2, 1.0)])], bias=0.125)
    path = tmp_path / "model.pkl"

    persistence.save(model, path)
    loaded = persistence.load(path)

    assert loaded.bias == 0.125
    assert loaded.kernel == 'linear'
    assert loaded.n_features == 3
    assert [sv.features for sv in loaded.support_vectors] == [sv.features for sv in model.support_vectors]
    np.testing.assert_array_equal(loaded.coefficients, model.coefficients)


def test_metadata_sidecar(persistence, tmp_path, make_model):
    path = persistence.save(make_model([(1.0, [(1, 1.0)])], bias=2.0), tmp_path / "model.pkl")

    metadata = json.loads(path.with_suffix('.json').read_text(encoding='utf-8'))

    assert metadata['n_support_vectors'] == 1
    assert metadata['bias'] == 2.0
    assert metadata['kernel'] == 'linear'


def test_round_trip_trained_model(tmp_path, separable_problem):
    trainer = SVMTrainer({'svm': {'backend': 'kernel', 'C': 1.0}}, models_dir=tmp_path)
    model = trainer.train(separable_problem)
    path = trainer.save(model, tmp_path / "svmmodel.pkl")

    loaded = trainer.load(path)

    synthesizer = DetectorVectorSynthesizer()
    original = synthesizer.synthesize(model)
    reloaded = synthesizer.synthesize(loaded)
    assert reloaded.weights.tobytes() == original.weights.tobytes()
    assert reloaded.bias == original.bias

    sample = separable_problem[3]
    assert trainer.predict(loaded, sample) == trainer.predict(model, sample)


def test_save_model_uses_timestamped_name(persistence, make_model):
    path = persistence.save_model(make_model([(1.0, [(1, 1.0)])]), name='person')

    assert path.name.startswith("svm_person_model_")
    assert persistence.list_available_models() == [path]


def test_save_model_without_directory(make_model):
    with pytest.raises(PersistenceError):
        ModelPersistence().save_model(make_model([(1.0, [(1, 1.0)])]))


def test_failed_save_leaves_no_file(persistence, tmp_path, make_model):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")

    with pytest.raises(PersistenceError):
        persistence.save(make_model([(1.0, [(1, 1.0)])]), blocker / "model.pkl")

    assert blocker.read_text(encoding="utf-8") == "not a directory"


def test_load_missing_file(persistence, tmp_path):
    with pytest.raises(PersistenceError) as exc_info:
        persistence.load(tmp_path / "missing.pkl")
    assert exc_info.value.path == str(tmp_path / "missing.pkl")


def test_load_corrupt_file(persistence, tmp_path):
    path = tmp_path / "corrupt.pkl"
    path.write_bytes(b"this is not a joblib file")

    with pytest.raises(PersistenceError):
        persistence.load(path)


def test_load_foreign_package(persistence, tmp_path):
    path = tmp_path / "foreign.pkl"
    joblib.dump({'model': 'something else'}, path)

    with pytest.raises(PersistenceError):
        persistence.load(path)


@pytest.mark.parametrize("broken", [
    {'bias': None},
    {'coefficients': [1.0, 2.0]},
    {'bias': float('nan')},
])
def test_load_incomplete_package(persistence, tmp_path, broken):
    package = {
        'format': PACKAGE_FORMAT,
        'backend': 'kernel',
        'kernel': 'linear',
        'bias': 0.5,
        'n_features': 2,
        'sv_indices': [np.array([1, 2])],
        'sv_values': [np.array([1.0, 2.0])],
        'coefficients': [1.0],
    }
    package.update(broken)
    path = tmp_path / "broken.pkl"
    joblib.dump(package, path)

    with pytest.raises(PersistenceError):
        persistence.load(path)
