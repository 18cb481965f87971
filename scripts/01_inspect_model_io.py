#!/usr/bin/env python
"""
Inspects the input and output shapes of one or more ONNX face models.

Use this to confirm that a model matches what the pipeline expects before
bundling it: a (1, S, S, 3) input, four detector outputs or one
(1, embedding_size) embedding output.
"""

import argparse
import sys
from pathlib import Path

import onnxruntime as ort

# Add project root to Python path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(PROJECT_ROOT))

from face_id.pipeline.accelerator import gpu_supported  # noqa: E402


def inspect_model(name: str, path: Path):
    """Loads a model and prints its input and output details."""
    print(f"--- Inspecting: {name} ---")
    try:
        session = ort.InferenceSession(str(path), providers=["CPUExecutionProvider"])
    except Exception as e:
        print(f"[ERROR] Could not inspect model: {e}")
        return

    print("Inputs:")
    for i, input_meta in enumerate(session.get_inputs()):
        print(f"  [{i}] Name: {input_meta.name}, Shape: {input_meta.shape}, Type: {input_meta.type}")

    print("Outputs:")
    for i, output_meta in enumerate(session.get_outputs()):
        print(f"  [{i}] Name: {output_meta.name}, Shape: {output_meta.shape}, Type: {output_meta.type}")
    print()


def main(args):
    """Main function to inspect all provided models."""
    print(f"Available providers: {', '.join(ort.get_available_providers())}")
    print(f"GPU supported: {gpu_supported()}\n")
    for model_path_str in args.model_paths:
        model_path = Path(model_path_str)
        if not model_path.exists():
            print(f"[ERROR] Provided model path does not exist: {model_path}")
            continue
        inspect_model(model_path.name, model_path)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Inspect the input/output specs of ONNX models.")
    parser.add_argument("model_paths", nargs="+", help="One or more paths to ONNX model files.")
    main(parser.parse_args())
