# src/utils/container_simulator.py
"""배포 시 할당되는 가짜 컨테이너 메타데이터와 상태 조회용 사용량 수치를 생성합니다."""
import random
import string
from typing import Any, Dict, Optional

CONTAINER_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_container_id(rng: Optional[random.Random] = None) -> str:
    rng = rng or random.Random()
    return "vps_" + "".join(rng.choice(CONTAINER_ID_ALPHABET) for _ in range(16))


def generate_ip_address(rng: Optional[random.Random] = None) -> str:
    rng = rng or random.Random()
    return f"172.{rng.randrange(255)}.{rng.randrange(255)}.{rng.randrange(254) + 1}"


def sample_resource_usage(rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """매 호출마다 새로 뽑는 값으로, 이전 호출과 일관성이 없습니다."""
    rng = rng or random.Random()
    return {
        "uptime_seconds": rng.randrange(86400),
        "resource_usage": {
            "cpu": rng.randrange(100),
            "memory": rng.randrange(2048),
            "disk": rng.randrange(20480),
        },
    }
