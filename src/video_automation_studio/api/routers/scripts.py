from __future__ import annotations

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import JSONResponse

from ...config import Settings
from ...logging_config import get_logger
from ...models import ScriptOptions
from ...services import NarrationError, NarrationGenerator, SpeechSynthesisError, SpeechSynthesizer
from ...utils.file_utils import bytes_to_mb, remove_file
from ...utils.time_utils import get_timestamp, new_job_id
from ..deps import get_app_settings, get_narration_generator, get_speech_synthesizer

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["scripts"])


def _synthesize_preview(
    synthesizer: SpeechSynthesizer, text: str, api_key: str, scratch_path: Path, request_id: str
) -> Optional[dict]:
    """Narrate the script once to check it, report the size, then drop the audio."""
    try:
        narration = synthesizer.synthesize(text, scratch_path, api_key)
    except SpeechSynthesisError as e:
        logger.warning("Script audio generation failed", request_id=request_id, kind=e.kind, error=str(e))
        return None
    finally:
        remove_file(scratch_path)
    return {
        "fileSize": narration.size_bytes,
        "fileSizeMB": bytes_to_mb(narration.size_bytes),
        "voiceId": narration.voice_id,
    }


@router.post("/generate-script")
def generate_script(
    payload: dict = Body(...),
    settings: Settings = Depends(get_app_settings),
    generator: NarrationGenerator = Depends(get_narration_generator),
    synthesizer: SpeechSynthesizer = Depends(get_speech_synthesizer),
):
    request_id = new_job_id()
    prompt = payload.get("prompt") or ""
    api_key = payload.get("openaiApiKey") or payload.get("apiKey")

    if not isinstance(prompt, str) or not prompt.strip():
        raise HTTPException(status_code=400, detail="prompt is required")
    if not api_key:
        raise HTTPException(status_code=400, detail="OpenAI API key is required")

    options = ScriptOptions.from_dict(payload)
    logger.info("Script generation requested", request_id=request_id, theme=options.theme)

    try:
        script = generator.generate(prompt, api_key, options)
    except NarrationError as e:
        logger.error("Script generation failed", request_id=request_id, error=str(e))
        return JSONResponse(
            status_code=500,
            content={"error": "Script generation failed", "message": str(e), "requestId": request_id},
        )

    generated_audio = None
    elevenlabs_api_key = payload.get("elevenLabsApiKey")
    if elevenlabs_api_key:
        scratch_path = Path(settings.temp_dir) / f"script_audio_{request_id}.mp3"
        generated_audio = _synthesize_preview(synthesizer, script.text, elevenlabs_api_key, scratch_path, request_id)

    return {
        "success": True,
        "requestId": request_id,
        "script": script.text,
        "options": script.options.to_dict(),
        "metadata": {
            "tokensUsed": script.tokens_used,
            "estimatedCost": generator.estimate_cost(script.tokens_used),
            "characterCount": script.character_count,
            "generatedAt": get_timestamp(),
            "requestId": request_id,
        },
        "generatedAudio": generated_audio,
    }
