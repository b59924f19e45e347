from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from ..database import Base

VPS_STATUSES = ("pending", "deploying", "running", "stopped", "error")

class VPS(Base):
    """
    사용자가 배포한 시뮬레이션 VPS 레코드입니다.
    container_id, ip_address는 배포 시점에 임의로 생성될 뿐 실제 컨테이너와 연결되지 않으며,
    cpu/ram/disk 역시 표시용 값으로 실제로 할당되거나 측정되지 않습니다.
    """
    __tablename__ = "vps_instances"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    status = Column(String, nullable=False, default="pending")
    container_id = Column(String, unique=True)
    docker_image = Column(String, nullable=False, default="ubuntu:22.04")
    cpu = Column(String, nullable=False)
    ram = Column(String, nullable=False)
    disk = Column(String, nullable=False)
    ip_address = Column(String)
    ports = Column(JSON, default=list)
    environment_vars = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
    deployed_at = Column(DateTime)
    last_started_at = Column(DateTime)
