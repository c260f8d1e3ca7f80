"""Request payload builders shared by the API tests."""


def make_client(**overrides) -> dict:
    client = {
        "firstName": "Jane",
        "lastName": "Doe",
        "dateOfBirth": "1990-01-01",
        "streetAddress": "1 Main St",
        "city": "Tulsa",
        "state": "OK",
        "zipCode": "74103",
        "primaryPhone": "5551234567",
    }
    client.update(overrides)
    return client


def make_defendant(**overrides) -> dict:
    defendant = {
        "firstName": "John",
        "lastName": "Roe",
    }
    defendant.update(overrides)
    return defendant


def make_payload(clients=None, defendants=None, **intake_overrides) -> dict:
    intake = {
        "dateOfLoss": "2024-01-15",
        "clients": [make_client()] if clients is None else clients,
        "defendants": [] if defendants is None else defendants,
    }
    intake.update(intake_overrides)
    return {"intakeData": intake}
