import os

# 기본 디렉토리 설정
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# 경로 설정
LOG_FILE = os.path.join(BASE_DIR, "launch.log")
HISTORY_FILE = os.getenv("HISTORY_FILE", os.path.join(BASE_DIR, "exam_history.json"))

# 서버 설정
DEFAULT_HOST = os.getenv("HOST", "127.0.0.1")
DEFAULT_PORT = int(os.getenv("PORT", "8000"))

# 외부 에이전트 설정 (생성 / 채점)
AGENT_API_URL = os.getenv("AGENT_API_URL", f"http://{DEFAULT_HOST}:{DEFAULT_PORT}/api/agent")
GENERATION_AGENT_ID = os.getenv("GENERATION_AGENT_ID", "692f2dfb6b01be7c2f9f5387")
GRADING_AGENT_ID = os.getenv("GRADING_AGENT_ID", "692f2e352bb6b2ddb3634ddd")
AGENT_TIMEOUT = float(os.getenv("AGENT_TIMEOUT", "120"))

# OpenAI 설정 (/api/agent 게이트웨이)
MODEL_NAME = os.getenv("MODEL_NAME", "gpt-4o-mini")

# 업로드 설정
MAX_UPLOAD_SIZE = int(os.getenv("MAX_UPLOAD_SIZE", str(50 * 1024 * 1024)))  # 50 MB
MAX_PDF_PAGES = 200
