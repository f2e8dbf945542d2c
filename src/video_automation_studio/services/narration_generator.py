"""
Narration script generation through the OpenAI chat completions API.

Also produces YouTube titles and descriptions from a finished script.
"""

import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from openai import OpenAI

from ..config import get_settings
from ..logging_config import LoggerMixin
from ..models import Script, ScriptOptions

# Character count is the proxy for spoken length
SCRIPT_MIN_CHARS = 300
SCRIPT_MAX_CHARS = 400

DEFAULT_DESCRIPTION = (
    "🌟 Vídeo motivacional gerado automaticamente\n\n"
    "#motivacional #inspiração #dailydream"
)

_TITLE_PATTERN = re.compile(r"T[IÍ]TULO:\s*(.+)", re.IGNORECASE)
_DESCRIPTION_PATTERN = re.compile(r"DESCRI[CÇ][AÃ]O:\s*(.+)", re.IGNORECASE | re.DOTALL)
_MARKDOWN_PATTERN = re.compile(r"[*#_`>]+")


class NarrationError(Exception):
    """Raised when a script cannot be generated."""
    pass


def build_messages(prompt: str, options: ScriptOptions) -> List[Dict[str, str]]:
    """Build the system/user message pair for a narration request."""
    system_prompt = (
        "Você é um especialista em roteiros de narração para vídeos curtos. "
        "Escreva textos que sejam:\n"
        f"- concisos e diretos ({SCRIPT_MIN_CHARS}-{SCRIPT_MAX_CHARS} caracteres no máximo)\n"
        "- fluidos e naturais para leitura em voz alta\n"
        f"- com linguagem {options.style}\n"
        f"- em {options.language}\n"
        f"- com duração aproximada de {options.duration}\n"
        "- sem títulos, subtítulos ou formatação markdown\n"
        "- apenas texto corrido, para ser lido como narração"
    )
    user_prompt = (
        f"Crie um texto para narração de vídeo com o tema: {options.theme}\n\n"
        f"Contexto ou ideia: {prompt}\n\n"
        f"Importante: no máximo {SCRIPT_MAX_CHARS} caracteres, só o texto corrido, "
        "sem asteriscos, hashtags, listas ou numeração."
    )
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]


def build_job_prompt(clip_names: Sequence[str], total_duration: float) -> str:
    """Prompt used when a combine job generates its own narration."""
    if total_duration > 60:
        duration_text = f"{round(total_duration / 60)} minutos"
    else:
        duration_text = f"{round(total_duration)} segundos"
    context = ", ".join(clip_names)
    return (
        f"Crie um roteiro conciso para um vídeo motivacional com os seguintes vídeos: {context}. "
        f"O vídeo tem duração de {duration_text}. "
        f"Crie uma mensagem motivacional impactante e direta em no máximo {SCRIPT_MIN_CHARS} caracteres."
    )


JOB_SCRIPT_OPTIONS = ScriptOptions(duration="30 segundos", style="direto e impactante")


def clean_script(text: str, max_chars: int = SCRIPT_MAX_CHARS) -> str:
    """
    Strip formatting and cut an over-long script at a sentence boundary.

    Falls back to a word boundary when no sentence ends inside the limit.
    """
    text = _MARKDOWN_PATTERN.sub("", text or "")
    text = " ".join(text.split())
    if len(text) <= max_chars:
        return text

    head = text[:max_chars]
    sentence_end = max(head.rfind(". "), head.rfind("! "), head.rfind("? "))
    if sentence_end >= 0:
        return head[:sentence_end + 1]
    if head[-1] in ".!?":
        return head
    return head.rsplit(" ", 1)[0].rstrip(",;:")


def parse_video_metadata(text: str, today: Optional[datetime] = None) -> Tuple[str, str]:
    """
    Parse `TÍTULO: ...` / `DESCRIÇÃO: ...` out of a completion.

    Missing parts fall back to the defaults.
    """
    title_match = _TITLE_PATTERN.search(text or "")
    description_match = _DESCRIPTION_PATTERN.search(text or "")

    title = title_match.group(1).strip().strip('"') if title_match else ""
    description = description_match.group(1).strip() if description_match else ""
    return title or default_title(today), description or DEFAULT_DESCRIPTION


def default_title(today: Optional[datetime] = None) -> str:
    today = today or datetime.now()
    return f"Vídeo Motivacional - {today.strftime('%d/%m/%Y')}"


class NarrationGenerator(LoggerMixin):
    """Generates narration scripts and video metadata."""

    def __init__(self, settings=None, client_factory: Optional[Callable[..., Any]] = None):
        self.settings = settings or get_settings()
        self.client_factory = client_factory or OpenAI
        self.model = self.settings.openai_model
        self.max_tokens = int(self.settings.openai_max_tokens)
        self.temperature = float(self.settings.openai_temperature)
        self.cost_per_token = float(getattr(self.settings, "openai_cost_per_token", 0.002))

    def generate(self, prompt: str, api_key: str, options: Optional[ScriptOptions] = None) -> Script:
        """
        Generate a narration script.

        Args:
            prompt: Free-text idea or context for the narration
            api_key: OpenAI API key supplied by the caller
            options: Theme, duration, style and language; defaults apply

        Returns:
            The generated Script

        Raises:
            NarrationError: If the key or prompt is missing, the API call
                fails, or the completion is empty
        """
        if not api_key:
            raise NarrationError("OpenAI API key is required")
        if not prompt or not prompt.strip():
            raise NarrationError("Prompt is required")

        options = options or ScriptOptions()
        content, tokens = self._complete(api_key, build_messages(prompt, options))

        text = clean_script(content)
        if not text:
            raise NarrationError("Text generation returned an empty script")

        script = Script(text=text, options=options, tokens_used=tokens)
        self.logger.info(
            "Script generated",
            theme=options.theme,
            characters=script.character_count,
            tokens_used=tokens,
        )
        return script

    def generate_video_metadata(self, script: Script, api_key: str) -> Tuple[str, str]:
        """
        Ask for a YouTube title and description for a script.

        Never raises: any failure falls back to the default title and
        description.
        """
        prompt = (
            "Com base no roteiro de vídeo abaixo, crie:\n"
            "1. Um título atrativo para YouTube (máximo 60 caracteres)\n"
            "2. Uma descrição envolvente (máximo 200 caracteres)\n\n"
            f'Roteiro: "{script.text}"\n\n'
            "Formato da resposta:\n"
            "TÍTULO: [título aqui]\n"
            "DESCRIÇÃO: [descrição aqui]\n\n"
            "A descrição deve incluir emojis e hashtags relevantes."
        )
        messages = [
            {"role": "system", "content": "Você escreve metadados otimizados para vídeos do YouTube."},
            {"role": "user", "content": prompt},
        ]
        try:
            content, _ = self._complete(api_key, messages)
        except NarrationError as e:
            self.logger.warning("Metadata generation failed, using defaults", error=str(e))
            return default_title(), DEFAULT_DESCRIPTION

        title, description = parse_video_metadata(content)
        self.logger.info("Video metadata generated", title=title)
        return title, description

    def estimate_cost(self, tokens: int) -> float:
        return round(tokens * self.cost_per_token, 2)

    def _complete(self, api_key: str, messages: List[Dict[str, str]]) -> Tuple[str, int]:
        if not api_key:
            raise NarrationError("OpenAI API key is required")
        try:
            client = self.client_factory(api_key=api_key)
            response = client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except Exception as e:
            self.logger.error("Text generation request failed", model=self.model, error=str(e))
            raise NarrationError(f"Failed to generate script: {e}") from e

        try:
            content = response.choices[0].message.content or ""
        except (AttributeError, IndexError) as e:
            raise NarrationError("Text generation returned no choices") from e

        usage = getattr(response, "usage", None)
        tokens = int(getattr(usage, "total_tokens", 0) or 0) if usage is not None else 0
        return content, tokens
