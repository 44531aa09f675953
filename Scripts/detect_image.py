from __future__ import annotations

import argparse
import logging
from pathlib import Path

import cv2

from yolo_scorer import draw_detections, load_labels, load_model_config, load_scorer, yolo_coco_p5, yolo_coco_p6


def read_image(path: str):
    img = cv2.imread(path, cv2.IMREAD_UNCHANGED)
    if img is None:
        raise FileNotFoundError(f"Could not read image at path: {path}")
    if img.ndim == 2:
        img = cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
    return img


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a YOLOv5 model on one image and print/draw the detections.")
    parser.add_argument("--model", required=True, help="Path to a YOLOv5 model (.onnx / .torchscript).")
    parser.add_argument("--image", required=True, help="Path to an input image.")
    parser.add_argument("--config", default=None, help="Model config JSON. Defaults to the COCO P5 layout.")
    parser.add_argument("--p6", action="store_true", help="Use the COCO P6 (1280) layout instead of P5.")
    parser.add_argument("--names", default=None, help="Optional metadata.yaml with a `names:` block.")
    parser.add_argument("--backend", default=None, help="Force backend: onnxruntime / torchscript.")
    parser.add_argument("--output", default=None, help="Write the annotated image here.")
    parser.add_argument("--show", action="store_true", help="Open a window with the annotated image.")
    parser.add_argument("--show-kind", action="store_true", help="Append the label kind to captions.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.config:
        config = load_model_config(args.config)
    else:
        overrides = {"labels": load_labels(args.names)} if args.names else {}
        config = yolo_coco_p6(**overrides) if args.p6 else yolo_coco_p5(**overrides)

    image = read_image(args.image)
    with load_scorer(args.model, config, backend=args.backend, root=".") as scorer:
        detections = scorer.predict(image)

    for det in detections:
        print(det.label.name, f"{det.score:.3f}", tuple(round(v, 1) for v in det.as_xyxy()))

    if args.output or args.show:
        vis = draw_detections(image, detections, show_score=True, show_kind=args.show_kind)
        if args.output:
            Path(args.output).parent.mkdir(parents=True, exist_ok=True)
            if not cv2.imwrite(args.output, vis):
                raise RuntimeError(f"Could not write image: {args.output}")
        if args.show:
            cv2.imshow("detections", vis)
            cv2.waitKey(0)
            cv2.destroyAllWindows()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
