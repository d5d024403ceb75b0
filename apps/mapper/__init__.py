"""
Mapper App - Native Video Content Mapping

Responsibilities:
- Consume native video messages from the read stream (Redis Streams)
- Skip messages from other origin systems or with non-JSON content types
- Map native video JSON onto publication events (publish and unpublish)
- Derive image set and story package uuids from source uuids
- Publish mapped events to the write stream
- Report the health of both queues

Outputs:
- Redis stream entry on REDIS_WRITE_STREAM: headers={X-Request-Id, Message-Timestamp,
  Message-Id, Message-Type, Content-Type, Origin-System-Id}, body=publication event JSON
"""
