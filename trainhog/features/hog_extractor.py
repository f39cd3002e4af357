"""
HOG (Histogram of Oriented Gradients) feature extractor.

Two implementations are available through the 'implementation' key:

- 'opencv' (default): cv2.HOGDescriptor. Its descriptor layout is the one
  HOGDescriptor.detectMultiScale scores, so a detector trained on these
  features can be loaded with setSVMDetector.
- 'skimage': skimage.feature.hog. Same vector length for the default
  parameters but a different component order and normalization, so a
  detector trained on it only fits skimage-computed features.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Tuple, Union

import cv2
import numpy as np
from skimage import feature

logger = logging.getLogger(__name__)

IMPLEMENTATIONS = ('opencv', 'skimage')


class HOGExtractor:
    """
    Extracts HOG descriptors from fixed-size grayscale training windows.

    Failures (unreadable image, wrong window size) are signalled by an
    empty feature vector so the caller can skip the sample.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize HOG extractor with configuration.

        Args:
            config: The 'features' config section

        Raises:
            ValueError: for an unknown implementation or a block stride the
                skimage implementation cannot honour
        """
        hog_config = config.get('hog', {})

        self.implementation = hog_config.get('implementation', 'opencv')
        if self.implementation not in IMPLEMENTATIONS:
            raise ValueError(f"Unknown HOG implementation '{self.implementation}'. "
                             f"Available: {list(IMPLEMENTATIONS)}")

        self.win_size: Tuple[int, int] = tuple(hog_config.get('win_size', [64, 128]))
        self.orientations = hog_config.get('orientations', 9)
        self.pixels_per_cell = tuple(hog_config.get('pixels_per_cell', [8, 8]))
        self.cells_per_block = tuple(hog_config.get('cells_per_block', [2, 2]))
        # (x, y) in pixels; one cell when unset
        self.block_stride = tuple(hog_config.get('block_stride', [self.pixels_per_cell[1], self.pixels_per_cell[0]]))
        self.block_norm = hog_config.get('block_norm', 'L2-Hys')
        self.transform_sqrt = hog_config.get('transform_sqrt', False)

        if self.implementation == 'skimage' and self.block_stride != (self.pixels_per_cell[1], self.pixels_per_cell[0]):
            raise ValueError("skimage HOG only supports a block stride of one cell")

        self._descriptor = self._create_descriptor() if self.implementation == 'opencv' else None
        self.feature_vector_size = self._calculate_feature_size()
        logger.info(f"HOG extractor initialized ({self.implementation}): window {self.win_size}, "
                    f"{self.orientations} orientations, {self.pixels_per_cell} pixels/cell, "
                    f"{self.cells_per_block} cells/block, vector size {self.feature_vector_size}")

    def _block_size(self) -> Tuple[int, int]:
        return (self.pixels_per_cell[1] * self.cells_per_block[1],
                self.pixels_per_cell[0] * self.cells_per_block[0])

    def _create_descriptor(self) -> cv2.HOGDescriptor:
        return cv2.HOGDescriptor(
            self.win_size,
            self._block_size(),
            self.block_stride,
            (self.pixels_per_cell[1], self.pixels_per_cell[0]),
            self.orientations,
        )

    def _calculate_feature_size(self) -> int:
        width, height = self.win_size
        block_w, block_h = self._block_size()
        stride_x, stride_y = self.block_stride
        if width < block_w or height < block_h:
            return 0
        n_blocks_x = (width - block_w) // stride_x + 1
        n_blocks_y = (height - block_h) // stride_y + 1
        per_block = self.orientations * self.cells_per_block[0] * self.cells_per_block[1]
        return n_blocks_x * n_blocks_y * per_block

    def extract_image(self, image: np.ndarray) -> np.ndarray:
        """
        Compute the descriptor of a grayscale window.

        Args:
            image: 2D uint8 array of shape (height, width)

        Returns:
            Feature vector, or an empty array if the window size does not match
        """
        height, width = image.shape[:2]
        if (width, height) != self.win_size:
            logger.error(f"Image dimensions ({width} x {height}) do not match HOG window size "
                         f"({self.win_size[0]} x {self.win_size[1]})")
            return np.empty(0, dtype=np.float64)

        if self._descriptor is not None:
            descriptor = self._descriptor.compute(np.ascontiguousarray(image, dtype=np.uint8))
        else:
            descriptor = feature.hog(
                image,
                orientations=self.orientations,
                pixels_per_cell=self.pixels_per_cell,
                cells_per_block=self.cells_per_block,
                block_norm=self.block_norm,
                transform_sqrt=self.transform_sqrt,
                visualize=False,
                feature_vector=True
            )
        return np.asarray(descriptor, dtype=np.float64).ravel()

    def extract(self, image_path: Union[str, Path]) -> np.ndarray:
        """
        Read an image file as grayscale and compute its descriptor.

        Returns:
            Feature vector, or an empty array if the image is unreadable or mis-sized
        """
        image = cv2.imread(str(image_path), cv2.IMREAD_GRAYSCALE)
        if image is None:
            logger.error(f"HOG image '{image_path}' is empty, features calculation skipped")
            return np.empty(0, dtype=np.float64)
        features = self.extract_image(image)
        if features.size == 0:
            logger.error(f"Skipping '{image_path}'")
        return features
