def test_liveness(client):
    assert client.get("/health/live").json()["status"] == "ok"


def test_readiness_checks_database_and_redis(client):
    body = client.get("/health/ready").json()

    assert body["status"] == "ok"
    assert body["checks"]["database"]["status"] == "healthy"
    assert body["checks"]["redis"]["status"] == "healthy"
