from fastapi import FastAPI, File, UploadFile, HTTPException
from fastapi.responses import Response
from fastapi.middleware.cors import CORSMiddleware
import numpy as np
import cv2
import os
import traceback
import logging
from typing import Dict, Any

from set_solver.classification import CardDetector, cards_to_dataframe
from set_solver.config import DetectorConfig
from set_solver.diagnostics import BufferedDiagnosticLogger, LoggingDiagnosticLogger
from set_solver.drawing import draw_cards_on_image, draw_sets_on_image
from set_solver.set_finder import find_sets

# Configure logging for better debugging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

MAX_IMAGE_DIM = int(os.environ.get("MAX_IMAGE_DIM", 1920))

app = FastAPI(title="Set Solver API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Loaded once at startup; a detector holds no per-capture state
detector_config: Dict[str, Any] = {"config": None}


@app.on_event("startup")
async def startup_event():
    """Read detector settings from the environment."""
    detector_config["config"] = DetectorConfig.from_env()
    logger.info("Detector configuration loaded")


def get_config() -> DetectorConfig:
    if detector_config["config"] is None:
        detector_config["config"] = DetectorConfig.from_env()
    return detector_config["config"]


async def read_board_image(file: UploadFile) -> np.ndarray:
    """
    Decode an uploaded image and shrink it so its longest side is at most MAX_IMAGE_DIM.

    Raises:
        HTTPException: 400 if the upload is not a decodable image
    """
    if not (file.content_type and file.content_type.startswith('image/')):
        raise HTTPException(status_code=400, detail="File must be an image")

    contents = await file.read()
    nparr = np.frombuffer(contents, np.uint8)
    board_image = cv2.imdecode(nparr, cv2.IMREAD_COLOR) if nparr.size else None
    del contents
    del nparr
    if board_image is None:
        raise HTTPException(status_code=400, detail="Could not decode image")

    h, w = board_image.shape[:2]
    if max(h, w) > MAX_IMAGE_DIM:
        scale = MAX_IMAGE_DIM / max(h, w)
        new_size = (int(w * scale), int(h * scale))
        board_image = cv2.resize(board_image, new_size, interpolation=cv2.INTER_AREA)
        logger.info(f"Resized image from {w}x{h} to {new_size[0]}x{new_size[1]}")
    return board_image


@app.get("/")
async def root():
    """Root endpoint that confirms the API is running."""
    return {"message": "Set Solver API is running"}


@app.get("/health")
async def health_check():
    get_config()
    return {"status": "healthy"}


@app.post("/detect_cards")
async def detect_cards_endpoint(file: UploadFile = File(...)):
    """
    Detect cards in an uploaded board photo and list every valid set.

    Returns:
        dict: 'cards' (one record per card), 'sets' (card indices per set)
              and 'diagnostics' (operator log lines)
    """
    board_image = await read_board_image(file)
    try:
        diagnostics = BufferedDiagnosticLogger()
        cards = CardDetector(get_config(), diagnostics).detect_cards(board_image)
        sets_found = find_sets(cards, diagnostics)
        diagnostics.log(f"{len(sets_found)} valid sets")
        return {
            "cards": cards_to_dataframe(cards).to_dict("records"),
            "sets": [s["set_indices"] for s in sets_found],
            "diagnostics": diagnostics.lines,
        }
    except Exception as e:
        error_details = f"Error: {str(e)}\n{traceback.format_exc()}"
        logger.error(error_details)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/detect_sets")
async def detect_sets(file: UploadFile = File(...)):
    """
    Process an uploaded image to detect and annotate valid sets of cards.

    Args:
        file (UploadFile): The uploaded image file

    Returns:
        Response: JPEG image with annotated sets
    """
    board_image = await read_board_image(file)
    try:
        diagnostics = LoggingDiagnosticLogger()
        cards = CardDetector(get_config(), diagnostics).detect_cards(board_image)
        sets_found = find_sets(cards, diagnostics)

        if sets_found:
            annotated_image = draw_sets_on_image(board_image, cards, sets_found)
        else:
            annotated_image = draw_cards_on_image(board_image, cards)

        encode_params = [cv2.IMWRITE_JPEG_QUALITY, 90]
        success, encoded_image = cv2.imencode('.jpg', annotated_image, encode_params)
        if not success:
            raise HTTPException(status_code=500, detail="Failed to encode image")

        return Response(content=encoded_image.tobytes(), media_type="image/jpeg",
                        headers={"X-Cards-Found": str(len(cards)),
                                 "X-Sets-Found": str(len(sets_found))})

    except HTTPException:
        raise
    except Exception as e:
        error_details = f"Error: {str(e)}\n{traceback.format_exc()}"
        logger.error(error_details)
        raise HTTPException(status_code=500, detail=str(e))


if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port, workers=1)
