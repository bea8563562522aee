from datetime import date, datetime, timezone

import pytest

from participation_dashboard.snapshot import Snapshot

AS_OF = date(2025, 6, 15)


def _table(*rows):
    return {"data": list(rows)}


def build_document():
    """
    A small event program.

    Users 1, 3 and 4 hold an account; activation 7, event 21, prize 301,
    evaluation 402, lucky number 501 and coin guess 601 are unpublished.
    """

    published = "2025-05-01T00:00:00.000Z"
    return {
        "tables": {
            "up_users": _table(
                {"id": 1, "username": "ana", "tenho_conta": True, "data_usuario": "2000-01-01"},
                {"id": 2, "username": "bia", "tenho_conta": False, "data_usuario": "2010-01-01"},
                {"id": 3, "username": "caio", "tenho_conta": True, "data_usuario": "1960-05-20"},
                {"id": 4, "username": "davi", "tenho_conta": True, "data_usuario": None},
                {"id": 5, "username": "eva", "tenho_conta": False, "data_usuario": "2003-07-01"},
            ),
            "ativacoes": _table(
                {"id": 5, "nome": "Arena", "tipo": "game", "local": "Hall A", "pontuacao": 10, "published_at": published},
                {"id": 6, "nome": "Quiz", "tipo": "quiz", "local": "Hall B", "pontuacao": 5, "published_at": published},
                {"id": 7, "nome": "Draft", "tipo": "game", "published_at": None},
                {"id": 8, "nome": "Empty", "tipo": "talk", "published_at": published},
            ),
            "eventos": _table(
                {"id": 20, "nome": "Summer Fest", "published_at": published},
                {"id": 21, "nome": "Hidden Fest", "published_at": None},
            ),
            "clientes": _table({"id": 30, "nome": "Acme", "published_at": published}),
            "checkins": _table(
                {"id": 100, "created_at": "2025-06-01T10:15:00.000Z"},
                {"id": 101, "created_at": "2025-06-01T14:00:00.000Z"},
                {"id": 102, "created_at": "2025-06-02T10:30:00.000Z"},
                {"id": 103, "created_at": "2025-06-02T23:00:00.000Z"},
                {"id": 104, "created_at": "2025-06-03T09:00:00.000Z"},
                {"id": 105, "created_at": None},
            ),
            "checkins_users_permissions_user_lnk": _table(
                {"id": 1, "checkin_id": 100, "user_id": 1},
                {"id": 2, "checkin_id": 101, "user_id": 1},
                {"id": 3, "checkin_id": 102, "user_id": 2},
                {"id": 4, "checkin_id": 103, "user_id": 3},
                {"id": 5, "checkin_id": 104, "user_id": 4},
                {"id": 6, "checkin_id": 105, "user_id": 5},
            ),
            "checkins_ativacao_lnk": _table(
                {"id": 1, "checkin_id": 100, "ativacao_id": 5},
                {"id": 2, "checkin_id": 101, "ativacao_id": 6},
                {"id": 3, "checkin_id": 102, "ativacao_id": 5},
                {"id": 4, "checkin_id": 103, "ativacao_id": 5},
                {"id": 5, "checkin_id": 104, "ativacao_id": 7},
                {"id": 6, "checkin_id": 105, "ativacao_id": 6},
            ),
            "ativacoes_evento_lnk": _table(
                {"id": 1, "ativacao_id": 5, "evento_id": 20},
                {"id": 2, "ativacao_id": 6, "evento_id": 20},
                {"id": 3, "ativacao_id": 7, "evento_id": 20},
                {"id": 4, "ativacao_id": 8, "evento_id": 21},
            ),
            "eventos_cliente_lnk": _table({"id": 1, "evento_id": 20, "cliente_id": 30}),
            "resgates": _table({"id": 200}, {"id": 201}, {"id": 202}),
            "resgates_users_permissions_user_lnk": _table(
                {"id": 1, "resgate_id": 200, "user_id": 1},
                {"id": 2, "resgate_id": 201, "user_id": 2},
                {"id": 3, "resgate_id": 202, "user_id": 3},
            ),
            "brindes": _table(
                {"id": 300, "titulo": "Cap", "pontos": 50, "estoque": 10, "published_at": published},
                {"id": 301, "titulo": "Mug", "pontos": 80, "estoque": 3, "published_at": None},
            ),
            "resgates_brinde_lnk": _table(
                {"id": 1, "resgate_id": 200, "brinde_id": 300},
                {"id": 2, "resgate_id": 201, "brinde_id": 301},
                {"id": 3, "resgate_id": 202, "brinde_id": 300},
            ),
            "avaliacao_de_ativacaos": _table(
                {"id": 400, "avaliacao": 4, "created_at": "2025-06-01T11:00:00.000Z", "published_at": published},
                {"id": 401, "avaliacao": 5, "created_at": "2025-06-02T12:00:00.000Z", "published_at": published},
                {"id": 402, "avaliacao": 3, "created_at": "2025-06-01T15:00:00.000Z", "published_at": None},
                {"id": 403, "avaliacao": None, "created_at": "2025-06-02T13:00:00.000Z", "published_at": published},
                {"id": 404, "avaliacao": "2", "created_at": "2025-06-05T08:00:00.000Z", "published_at": published},
            ),
            "avaliacao_de_ativacaos_ativacao_lnk": _table(
                {"id": 1, "avaliacao_de_ativacao_id": 400, "ativacao_id": 5},
                {"id": 2, "avaliacao_de_ativacao_id": 401, "ativacao_id": 5},
                {"id": 3, "avaliacao_de_ativacao_id": 402, "ativacao_id": 6},
                {"id": 4, "avaliacao_de_ativacao_id": 403, "ativacao_id": 5},
                {"id": 5, "avaliacao_de_ativacao_id": 404, "ativacao_id": 6},
            ),
            "avaliacao_de_ativacaos_users_permissions_user_lnk": _table(
                {"id": 1, "avaliacao_de_ativacao_id": 400, "user_id": 1},
                {"id": 2, "avaliacao_de_ativacao_id": 401, "user_id": 2},
                {"id": 3, "avaliacao_de_ativacao_id": 402, "user_id": 1},
                {"id": 4, "avaliacao_de_ativacao_id": 403, "user_id": 3},
                {"id": 5, "avaliacao_de_ativacao_id": 404, "user_id": 1},
            ),
            "numero_da_sortes": _table(
                {"id": 500, "numero": "00042", "published_at": published},
                {"id": 501, "numero": "00043", "published_at": None},
            ),
            "numero_da_sortes_users_permissions_user_lnk": _table(
                {"id": 1, "numero_da_sorte_id": 500, "user_id": 1},
                {"id": 2, "numero_da_sorte_id": 501, "user_id": 1},
            ),
            "chute_moedas": _table(
                {"id": 600, "lado": "cara", "published_at": published},
                {"id": 601, "lado": "coroa", "published_at": None},
            ),
            "up_users_chute_moeda_lnk": _table(
                {"id": 1, "user_id": 1, "chute_moedar_id": 600},
                {"id": 2, "user_id": 2, "chute_moedar_id": 601},
            ),
            "pesquisa_experiencias": _table({"id": 700, "nota": 9, "published_at": published}),
            "pesquisa_experiencias_users_permissions_user_lnk": _table(
                {"id": 1, "pesquisa_experiencias_id": 700, "user_id": 1},
            ),
        }
    }


@pytest.fixture()
def document():
    return build_document()


@pytest.fixture()
def snapshot(document):
    return Snapshot.from_document(document)


@pytest.fixture()
def as_of():
    return AS_OF


@pytest.fixture()
def fixed_clock():
    return lambda: datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)
