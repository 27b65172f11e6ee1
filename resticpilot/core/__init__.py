"""restic 저장소 파사드."""
