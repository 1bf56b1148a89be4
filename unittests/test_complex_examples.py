import asyncio
from dataclasses import dataclass
from typing import Any

from frozendict import frozendict

from pvschema import (
    IssueCode,
    ParseFailure,
    array,
    boolean,
    default,
    enum,
    instance,
    integer,
    object_,
    record,
    refine,
    regex,
    string,
    superrefine,
    to_upper_case,
    trim,
)


@dataclass(frozen=True)
class BankingData:
    iban: str


def _iban_checksum_valid(iban: str) -> bool:
    rearranged = iban[4:] + iban[:4]
    return int("".join(str(int(char, 36)) for char in rearranged)) % 97 == 1


class TestComplexExamples:
    async def test_customer_with_contract_dependent_iban(self):
        """
        If a customer pays a contract through SEPA, the contract requires a valid IBAN.
        The IBAN check is asynchronous, e.g. because it asks a bank data service.
        """

        async def iban_known_to_bank(iban: str) -> bool:
            await asyncio.sleep(0)
            return _iban_checksum_valid(iban)

        iban = string().check(trim(), to_upper_case(), regex(r"^[A-Z]{2}\d{20}$"), refine(iban_known_to_bank))

        def check_sepa(customer: Any, ctx) -> None:
            for contract_id, pays_through_sepa in customer["paying_through_sepa"].items():
                if pays_through_sepa and contract_id not in customer["banking_data_per_contract"]:
                    ctx.add_issue(
                        f"{contract_id} requires banking data", path=("banking_data_per_contract", contract_id)
                    )

        customer = object_(
            {
                "name": string(),
                "age": integer(),
                "banking_data_per_contract": record(string(), object_({"iban": iban})),
                "paying_through_sepa": record(string(), boolean()),
            }
        ).check(superrefine(check_sepa))

        data = frozendict(
            {
                "name": "John Doe",
                "age": 42,
                "banking_data_per_contract": {
                    "contract_1": {"iban": "de89370400440532013000"},
                    "contract_2": {"iban": "DE89370400440532013001"},
                    "contract_3": {"iban": "DEA9370400440532013000"},
                },
                "paying_through_sepa": {"contract_1": True, "contract_2": True, "contract_4": True},
            }
        )
        result = await customer.safe_parse_async(data)
        assert isinstance(result, ParseFailure)
        assert [(issue.path, issue.code) for issue in result.issues] == [
            (("banking_data_per_contract", "contract_4"), IssueCode.CUSTOM),
            (("banking_data_per_contract", "contract_2", "iban"), IssueCode.CUSTOM),
            (("banking_data_per_contract", "contract_3", "iban"), IssueCode.INVALID_FORMAT),
            (("banking_data_per_contract", "contract_3", "iban"), IssueCode.CUSTOM),
        ]
        assert result.issues[0].message == "contract_4 requires banking data"

    def test_dataclass_values_and_defaults(self):
        settings = object_(
            {
                "banking_data": instance(BankingData),
                "retries": default(integer(), 3),
                "mode": default(enum(["fast", "safe"]), "safe"),
                "tags": default(array(string()), list),
            }
        )
        output = settings.parse({"banking_data": BankingData(iban="DE89370400440532013000")})
        assert output == {
            "banking_data": BankingData(iban="DE89370400440532013000"),
            "retries": 3,
            "mode": "safe",
            "tags": [],
        }
