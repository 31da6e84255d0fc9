import logging
import sys
from pathlib import Path

from PySide6.QtWidgets import QApplication

from studio_core.config import StudioConfig, load_config
from studio_core.editor import MaskEditor
from studio_core.io import load_image_rgba, save_image
from studio_core.segmenter import segment
from studio_ui.mask_canvas import MaskCanvas


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if len(sys.argv) < 2:
        print("usage: app.py INPUT [OUTPUT.png] [CONFIG.json]", file=sys.stderr)
        return 2

    src_path = sys.argv[1]
    out_path = sys.argv[2] if len(sys.argv) > 2 else None
    cfg = load_config(sys.argv[3]) if len(sys.argv) > 3 else StudioConfig()

    app = QApplication(sys.argv)
    app.setApplicationName("Print Asset Studio")

    asset = segment(load_image_rgba(src_path), cfg.segmenter)
    editor = MaskEditor(asset, cfg.editor)
    w = MaskCanvas(editor)
    w.setWindowTitle(f"Mask editor - {Path(src_path).name}")
    w.resize(1200, 800)
    w.show()
    code = app.exec()

    if out_path:
        save_image(out_path, editor.export_buffer())
    return code


if __name__ == "__main__":
    raise SystemExit(main())
