# config.py
import os
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    프로젝트 전역 설정 관리 (Pydantic V2)
    .env 파일에서 환경 변수를 로드하며, 없을 경우 기본값을 사용합니다.
    """

    # Project Info
    PROJECT_NAME: str = "TP_Difficulty"
    VERSION: str = "1.0.0"

    # Storage Settings
    DATA_ROOT: str = "data"
    LOG_DIR: str = "./logs"
    LOG_LEVEL: str = "INFO"

    # Hit probability model
    SECTION_COUNT: int = 20

    # Skill curve sweeps
    MASH_LEVEL_COUNT: int = 11
    CHEESE_LEVEL_COUNT: int = 11
    MISS_TP_COUNT: int = 20

    # Root finding (aim solver)
    SOLVER_MAX_ITERATIONS: int = 100
    PROB_PRECISION: float = 1e-4
    TIME_TP_PRECISION: float = 1e-3  # 시간 기준 역산의 처리량(tp) 허용 오차
    BRACKET_EXPANSIONS: int = 3  # TP_MAX 상한을 두 배로 늘리는 최대 횟수

    # .env 파일 로드 설정
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


# 싱글톤 인스턴스 생성
settings = Settings()

# 디렉토리 자동 생성 (초기화 시점 실행)
os.makedirs(settings.LOG_DIR, exist_ok=True)
