import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np

from trainhog.data import SparseVectorParser, TrainingProblem
from trainhog.detector import DenseDetector, DetectorVectorSynthesizer, load_detector, save_detector
from trainhog.evaluation import TrainingSetTester
from trainhog.features import HOGExtractor, TrainingFileWriter, list_files
from trainhog.training import SVMTrainer, TrainedModel
from trainhog.utils.config import load_config
from trainhog.utils.logger import setup_logging_from_config


class DetectorTrainingPipeline:
    """
    Stage-based HOG detector training.

    Each stage writes its artifact to the output directory, so stages can be
    run one at a time and pick up where the previous run stopped.
    """

    AVAILABLE_STAGES = ['features', 'training', 'detector', 'evaluation']

    def __init__(self, config_path: str, verbose: bool = False):
        """Initialize pipeline with configuration."""
        self.config_path = config_path
        self.config = load_config(config_path)
        setup_logging_from_config(self.config.to_dict(), verbose=verbose)
        self.logger = logging.getLogger('DetectorTrainingPipeline')

        paths = self.config.paths
        self.output_dir = Path(paths.get('output_dir', 'genfiles'))
        self.positive_dir = Path(paths.get('positive_dir', 'pos'))
        self.negative_dir = Path(paths.get('negative_dir', 'neg'))
        self.features_file = self.output_dir / paths.get('features_file', 'features.dat')
        self.model_file = self.output_dir / paths.get('model_file', 'svmmodel.pkl')
        self.detector_file = self.output_dir / paths.get('detector_file', 'descriptorvector.dat')

        self.trainer = SVMTrainer(self.config.training, models_dir=self.output_dir)
        self.parser = SparseVectorParser.from_config(self.config.data, kernel=self.trainer.parameters.kernel)

        # Artifacts kept in memory between stages of one run
        self.problem: Optional[TrainingProblem] = None
        self.model: Optional[TrainedModel] = None
        self.detector: Optional[DenseDetector] = None

        self.logger.info("Detector training pipeline initialized")

    def run(self, steps: List[str]) -> Dict[str, Any]:
        """
        Run the given stages in order.

        Available stages:
        - features: Compute HOG descriptors of the sample images, write the training file
        - training: Parse the training file, train the SVM, save the model
        - detector: Build the single detector vector from the model, save it
        - evaluation: Dry-run the detector against the training set

        Args:
            steps: List of stage names to execute

        Returns:
            Dictionary with results from executed stages
        """
        self.logger.info("=" * 80)
        self.logger.info(f"STARTING DETECTOR TRAINING - STEPS: {', '.join(steps)}")
        self.logger.info("=" * 80)

        stage_runners = {
            'features': self._run_features_stage,
            'training': self._run_training_stage,
            'detector': self._run_detector_stage,
            'evaluation': self._run_evaluation_stage,
        }

        results = {}
        current_stage = None
        try:
            for stage in steps:
                if stage not in stage_runners:
                    raise ValueError(f"Unknown stage: {stage}. Available: {self.AVAILABLE_STAGES}")
                current_stage = stage
                self.logger.info(f"{'=' * 80}")
                self.logger.info(f"STAGE: {stage.upper()}")
                self.logger.info(f"{'=' * 80}")
                results[stage] = stage_runners[stage]()
                self.logger.info(f"Stage '{stage}' completed successfully")
        except Exception as e:
            self.logger.error(f"Pipeline failed at stage '{current_stage}': {e}", exc_info=True)
            raise

        self.logger.info("=" * 80)
        self.logger.info("PIPELINE COMPLETED SUCCESSFULLY")
        self.logger.info("=" * 80)
        return results

    def _labelled_features(self,
                           extractor: HOGExtractor,
                           positives: List[Path],
                           negatives: List[Path]) -> Iterator[Tuple[float, np.ndarray]]:
        """Yield (+1/-1, descriptor) for every sample image, positives first."""
        samples = [(path, 1.0) for path in positives] + [(path, -1.0) for path in negatives]
        total = len(samples)
        for number, (path, label) in enumerate(samples, start=1):
            if number % 10 == 0 or number == total:
                self.logger.info(f"{number:5d} ({number * 100 // total:3d}%): File '{path}'")
            yield label, extractor.extract(path)

    def _run_features_stage(self) -> Dict[str, Any]:
        extensions = self.config.features.get('extensions', ['jpg', 'png', 'ppm'])
        positives = list_files(self.positive_dir, extensions)
        negatives = list_files(self.negative_dir, extensions)

        if not positives and not negatives:
            self.logger.warning("No training sample files found, nothing to do")
            return {'positive_images': 0, 'negative_images': 0, 'samples_written': 0}

        extractor = HOGExtractor(self.config.features)
        writer = TrainingFileWriter.from_config(self.config.data)
        self.logger.info(f"Reading files, generating HOG features and saving them to '{self.features_file}'")
        written = writer.write(self.features_file, self._labelled_features(extractor, positives, negatives))

        return {
            'positive_images': len(positives),
            'negative_images': len(negatives),
            'samples_written': written,
            'features_file': str(self.features_file),
        }

    def _load_problem(self) -> TrainingProblem:
        if self.problem is None:
            self.problem = self.parser.parse_file(self.features_file)
        return self.problem

    def _run_training_stage(self) -> Dict[str, Any]:
        problem = self._load_problem()
        self.logger.info(f"Calling {self.trainer.backend_name} SVM backend")
        self.model = self.trainer.train(problem)
        self.logger.info("Training done, saving model file")
        self.trainer.save(self.model, self.model_file)

        return {
            'samples': len(problem),
            'max_feature_index': problem.max_feature_index,
            'class_counts': problem.class_counts(),
            'support_vectors': self.model.n_support_vectors,
            'bias': self.model.bias,
            'model_file': str(self.model_file),
        }

    def _run_detector_stage(self) -> Dict[str, Any]:
        if self.model is None:
            self.model = self.trainer.load(self.model_file)

        synthesizer = DetectorVectorSynthesizer.from_config(self.config.detector)
        self.detector = synthesizer.synthesize(self.model)
        include_bias = self.config.detector.get('include_bias', True)
        save_detector(self.detector, self.detector_file, include_bias=include_bias)

        return {
            'dimension': self.detector.dimension,
            'bias': self.detector.bias,
            'skipped_entries': self.detector.skipped_entries,
            'detector_file': str(self.detector_file),
        }

    def _run_evaluation_stage(self) -> Dict[str, Any]:
        if self.detector is None:
            include_bias = self.config.detector.get('include_bias', True)
            self.detector = load_detector(self.detector_file, has_bias=include_bias)

        self.logger.info("Testing detector on the training set (sanity check only, "
                         "no detection quality conclusion possible)")
        tester = TrainingSetTester.from_config(self.config.evaluation)
        return tester.evaluate(self.detector, self._load_problem())


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Train a HOG detecting vector with an SVM',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument(
        'config',
        nargs='?',
        default='config.yaml',
        help='Path to configuration YAML file'
    )

    parser.add_argument(
        '--steps',
        type=str,
        default=None,
        help='Comma-separated list of stages to run (default: all). '
             'Options: features,training,detector,evaluation'
    )

    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the pipeline."""
    args = parse_arguments(argv)

    if not args.steps:
        steps = list(DetectorTrainingPipeline.AVAILABLE_STAGES)
    else:
        steps = [s.strip() for s in args.steps.split(',') if s.strip()]

    invalid_steps = [s for s in steps if s not in DetectorTrainingPipeline.AVAILABLE_STAGES]
    if invalid_steps:
        print(f"ERROR: Invalid steps: {invalid_steps}")
        print(f"Available steps: {DetectorTrainingPipeline.AVAILABLE_STAGES}")
        return 1

    try:
        pipeline = DetectorTrainingPipeline(args.config, verbose=args.verbose)
        results = pipeline.run(steps)

        print("=" * 80)
        print("PIPELINE EXECUTION SUMMARY")
        print("=" * 80)
        for stage, result in results.items():
            print(f"\n{stage.upper()}:")
            for key, value in result.items():
                print(f"  {key}: {value}")
        print("=" * 80)
        return 0

    except KeyboardInterrupt:
        print("\nPipeline interrupted by user")
        return 1

    except Exception as e:
        print(f"\nPipeline failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
