"""저장소 옵션 및 스냅샷 도메인 모델."""
