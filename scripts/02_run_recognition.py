#!/usr/bin/env python
"""
Runs a recognition pipeline on image files.

1. Builds the pipeline from the default config, a YAML file and CLI overrides
2. Loads each image with OpenCV and resizes it to the model input
   With --detector-config, a detector runs first and its best face is
   cropped out of the image before the embedder sees it
3. Prints detections above a score threshold, or the embedding summary
4. Optionally matches embeddings against a gallery built from --gallery images
"""

import argparse
import logging
import sys
from contextlib import ExitStack
from pathlib import Path
from typing import Optional

import cv2

# Add project root to Python path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(PROJECT_ROOT))

from face_id.common.config import load_config  # noqa: E402
from face_id.common.exceptions import FaceIdError, UnsupportedAcceleration  # noqa: E402
from face_id.common.image_utils import crop_box, image_to_argb  # noqa: E402
from face_id.pipeline.gallery import EmbeddingGallery  # noqa: E402
from face_id.pipeline.recognizer import RecognitionPipeline, best_detection  # noqa: E402

# --- Logging Setup ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)
logger = logging.getLogger(__name__)


def build_pipeline(args) -> RecognitionPipeline:
    overrides = {}
    if args.model:
        overrides["MODEL_FILENAME"] = args.model
    if args.labels:
        overrides["LABEL_FILENAME"] = args.labels
    if args.quantized:
        overrides["IS_QUANTIZED"] = True
    if args.input_size:
        overrides["INPUT_SIZE"] = args.input_size
    if args.hw:
        overrides["HW_ACCELERATION"] = True
    if args.enhanced:
        overrides["USE_ENHANCED_ACCELERATION"] = True

    return pipeline_from_settings(load_config(args.config, overrides))


def pipeline_from_settings(settings) -> RecognitionPipeline:
    try:
        return RecognitionPipeline.from_config(settings)
    except UnsupportedAcceleration as e:
        logger.warning(f"{e}. Falling back to CPU.")
        settings["HW_ACCELERATION"] = False
        return RecognitionPipeline.from_config(settings)


def build_detector(args) -> Optional[RecognitionPipeline]:
    if not args.detector_config:
        return None
    settings = load_config(args.detector_config, {"IS_QUANTIZED": True})
    return pipeline_from_settings(settings)


def crop_best_face(detector: RecognitionPipeline, image, min_score: float, padding: float):
    """Crop the highest-scoring detection out of the image, or None if there is none."""
    size = detector.config.input_size
    best = best_detection(detector.recognize(*image_to_argb(image, size)), min_score)
    if best is None:
        return None
    crop = crop_box(image, best.box, size, padding)
    if crop.size == 0:
        return None
    logger.info(f"Cropped {best.label} ({best.score:.2f}) at {best.box.as_list()}")
    return crop


def recognize_file(pipeline: RecognitionPipeline, image_path: str, detector=None, args=None):
    image = cv2.imread(image_path)
    if image is None:
        logger.error(f"Could not read image: {image_path}")
        return None
    if detector is not None:
        image = crop_best_face(detector, image, args.min_score, args.padding)
        if image is None:
            logger.warning(f"No face above {args.min_score} in {image_path}")
            return None
    pixels, width, height = image_to_argb(image, pipeline.config.input_size)
    return pipeline.recognize(pixels, width, height)


def main(args):
    try:
        pipeline = build_pipeline(args)
    except FaceIdError as e:
        logger.error(f"Failed to build pipeline: {e}")
        return 1
    try:
        detector = build_detector(args)
    except FaceIdError as e:
        logger.error(f"Failed to build detector: {e}")
        pipeline.close()
        return 1

    with ExitStack() as stack:
        stack.enter_context(pipeline)
        if detector is not None:
            stack.enter_context(detector)

        gallery = EmbeddingGallery(threshold=args.max_distance)
        for gallery_path in args.gallery:
            results = recognize_file(pipeline, gallery_path, detector, args)
            if results and results[0].has_embedding:
                gallery.register(Path(gallery_path).stem, results[0])

        for image_path in args.images:
            results = recognize_file(pipeline, image_path, detector, args)
            if results is None:
                continue
            logger.info(f"--- {image_path} ---")
            for rec in results:
                if rec.has_embedding:
                    match = gallery.match(rec)
                    if match is None:
                        logger.info(f"Embedding of length {rec.embedding.shape[0]}, no gallery match")
                    else:
                        logger.info(f"Matched {match.label} (distance {match.score:.3f})")
                elif rec.score >= args.min_score:
                    logger.info(f"[{rec.id}] {rec.label} {rec.score:.2f} box={rec.box.as_list()}")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run face detection or embedding on images.")
    parser.add_argument("images", nargs="+", help="Image files to process.")
    parser.add_argument("--config", help="YAML config file.")
    parser.add_argument("--model", help="Model file name.")
    parser.add_argument("--labels", help="Label file name.")
    parser.add_argument("--input-size", type=int, help="Model input size.")
    parser.add_argument("--quantized", action="store_true", help="Model is the quantized detector.")
    parser.add_argument("--hw", action="store_true", help="Enable hardware acceleration.")
    parser.add_argument("--enhanced", action="store_true", help="NNAPI with --hw, XNNPACK without.")
    parser.add_argument("--min-score", type=float, default=0.5, help="Detection score to print.")
    parser.add_argument("--gallery", nargs="*", default=[], help="Known faces, named by file stem.")
    parser.add_argument("--max-distance", type=float, default=None, help="Gallery match distance.")
    parser.add_argument("--detector-config", help="YAML config of a detector to crop faces first.")
    parser.add_argument("--padding", type=float, default=0.1, help="Crop margin around the face box.")
    sys.exit(main(parser.parse_args()))
