"""
Inference pipeline for face detection and face embedding models.

- accelerator: execution backend selection
- assets / model_loader: two-tier model and label lookup
- engine: onnxruntime session
- preprocess / postprocess: tensor layout and result decoding
- recognizer: the end-to-end RecognitionPipeline
- gallery: matching embeddings against known identities
"""
