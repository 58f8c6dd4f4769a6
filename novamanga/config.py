import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Transcription model configuration
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
TRANSCRIPTION_MODEL = os.getenv("TRANSCRIPTION_MODEL", "gemini-2.5-flash")
TRANSCRIPTION_TEMPERATURE = float(os.getenv("TRANSCRIPTION_TEMPERATURE", "0.2"))
TRANSCRIPTION_MAX_OUTPUT_TOKENS = int(os.getenv("TRANSCRIPTION_MAX_OUTPUT_TOKENS", "8192"))
TRANSCRIPTION_TIMEOUT = float(os.getenv("TRANSCRIPTION_TIMEOUT", "45"))  # seconds, client side
TRANSCRIPTION_MAX_ATTEMPTS = int(os.getenv("TRANSCRIPTION_MAX_ATTEMPTS", "2"))

# Batch analysis configuration
BATCH_SIZE = int(os.getenv("BATCH_SIZE", "2"))  # Kept small to avoid timeouts on slow connections
ROW_TOLERANCE = 50  # Bubble rows, on the model's 0-1000 coordinate scale

# Playback timing (seconds)
SHORT_TEXT_LENGTH = 5
SHORT_PAUSE = 0.5
LONG_PAUSE = 1.5
FAILED_PAGE_SKIP_DELAY = 2.0

# Archive configuration
IMAGE_EXTENSIONS = ("jpg", "jpeg", "png", "webp", "gif")

# Speech configuration
TTS_VOICE = os.getenv("TTS_VOICE", "en-US-AriaNeural")
TTS_RATE = os.getenv("TTS_RATE", "+0%")

# Paths
PROMPT_PATH = os.path.join(
    os.path.dirname(os.path.abspath(__file__)),
    "prompts",
    "transcription_prompt.txt"
)
