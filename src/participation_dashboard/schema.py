"""
Fixed schema of the participation snapshot.

Table and attribute names mirror the exported document (a Strapi-style dump),
so they stay in the upstream naming while the Python identifiers are English.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Tuple


class Entity(str, Enum):
    USERS = "up_users"
    CHECKINS = "checkins"
    ACTIVATIONS = "ativacoes"
    EVENTS = "eventos"
    CLIENTS = "clientes"
    REDEMPTIONS = "resgates"
    PRIZES = "brindes"
    LUCKY_NUMBERS = "numero_da_sortes"
    COIN_GUESSES = "chute_moedas"
    SURVEYS = "pesquisa_experiencias"
    EVALUATIONS = "avaliacao_de_ativacaos"


# Kinds subject to the published gate.
GATED: FrozenSet[Entity] = frozenset(
    {
        Entity.ACTIVATIONS,
        Entity.EVENTS,
        Entity.CLIENTS,
        Entity.PRIZES,
        Entity.LUCKY_NUMBERS,
        Entity.COIN_GUESSES,
        Entity.SURVEYS,
        Entity.EVALUATIONS,
    }
)


# Attribute names used by the engines.
PUBLISHED_AT = "published_at"
CREATED_AT = "created_at"
HAS_ACCOUNT = "tenho_conta"
BIRTH_DATE = "data_usuario"
RATING = "avaliacao"
ACTIVATION_NAME = "nome"
ACTIVATION_KIND = "tipo"
ACTIVATION_LOCATION = "local"
ACTIVATION_SCORE = "pontuacao"
PRIZE_TITLE = "titulo"
PRIZE_POINTS = "pontos"
PRIZE_STOCK = "estoque"


@dataclass(frozen=True)
class LinkSpec:
    """
    One many-to-many edge of the schema.

    ``left`` and ``right`` name the related kinds; ``left_key`` and
    ``right_key`` are the foreign-key columns holding their ids.
    """

    table: str
    left: Entity
    left_key: str
    right: Entity
    right_key: str

    def other(self, entity: Entity) -> Entity:
        if entity is self.left:
            return self.right
        if entity is self.right:
            return self.left
        raise KeyError(f"{entity.value} is not part of link {self.table}")


CHECKIN_USER = LinkSpec(
    "checkins_users_permissions_user_lnk", Entity.CHECKINS, "checkin_id", Entity.USERS, "user_id"
)
CHECKIN_ACTIVATION = LinkSpec(
    "checkins_ativacao_lnk", Entity.CHECKINS, "checkin_id", Entity.ACTIVATIONS, "ativacao_id"
)
ACTIVATION_EVENT = LinkSpec(
    "ativacoes_evento_lnk", Entity.ACTIVATIONS, "ativacao_id", Entity.EVENTS, "evento_id"
)
EVENT_CLIENT = LinkSpec(
    "eventos_cliente_lnk", Entity.EVENTS, "evento_id", Entity.CLIENTS, "cliente_id"
)
REDEMPTION_USER = LinkSpec(
    "resgates_users_permissions_user_lnk", Entity.REDEMPTIONS, "resgate_id", Entity.USERS, "user_id"
)
REDEMPTION_PRIZE = LinkSpec(
    "resgates_brinde_lnk", Entity.REDEMPTIONS, "resgate_id", Entity.PRIZES, "brinde_id"
)
EVALUATION_ACTIVATION = LinkSpec(
    "avaliacao_de_ativacaos_ativacao_lnk",
    Entity.EVALUATIONS,
    "avaliacao_de_ativacao_id",
    Entity.ACTIVATIONS,
    "ativacao_id",
)
EVALUATION_USER = LinkSpec(
    "avaliacao_de_ativacaos_users_permissions_user_lnk",
    Entity.EVALUATIONS,
    "avaliacao_de_ativacao_id",
    Entity.USERS,
    "user_id",
)
LUCKY_NUMBER_USER = LinkSpec(
    "numero_da_sortes_users_permissions_user_lnk",
    Entity.LUCKY_NUMBERS,
    "numero_da_sorte_id",
    Entity.USERS,
    "user_id",
)
# The upstream column really is spelled ``chute_moedar_id``.
COIN_GUESS_USER = LinkSpec(
    "up_users_chute_moeda_lnk", Entity.COIN_GUESSES, "chute_moedar_id", Entity.USERS, "user_id"
)
SURVEY_USER = LinkSpec(
    "pesquisa_experiencias_users_permissions_user_lnk",
    Entity.SURVEYS,
    "pesquisa_experiencias_id",
    Entity.USERS,
    "user_id",
)

LINKS: Tuple[LinkSpec, ...] = (
    CHECKIN_USER,
    CHECKIN_ACTIVATION,
    ACTIVATION_EVENT,
    EVENT_CLIENT,
    REDEMPTION_USER,
    REDEMPTION_PRIZE,
    EVALUATION_ACTIVATION,
    EVALUATION_USER,
    LUCKY_NUMBER_USER,
    COIN_GUESS_USER,
    SURVEY_USER,
)

# User-keyed links of kinds that no predicate filters.
PASS_THROUGH_USER_LINKS: Tuple[LinkSpec, ...] = (
    EVALUATION_USER,
    LUCKY_NUMBER_USER,
    COIN_GUESS_USER,
    SURVEY_USER,
)

ALL_TABLES: Tuple[str, ...] = tuple(entity.value for entity in Entity) + tuple(
    link.table for link in LINKS
)
