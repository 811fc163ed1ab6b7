"""Per-organization settings that drive bonus accrual."""

from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from commerce.domain import commerce


@commerce.aggregate
class OrganizationSettings:
    """Settings record identified by the organization id itself."""

    bonus_percentage = Integer(default=0, min_value=0, max_value=100)


@commerce.command(part_of="OrganizationSettings")
class ConfigureBonusPercentage:
    organization_id = Identifier(required=True)
    bonus_percentage = Integer(required=True)


@commerce.command_handler(part_of=OrganizationSettings)
class OrganizationSettingsHandler:
    @handle(ConfigureBonusPercentage)
    def configure_bonus_percentage(self, command):
        if not 0 <= command.bonus_percentage <= 100:
            raise ValidationError({"bonus_percentage": ["Bonus percentage must be between 0 and 100"]})

        repo = current_domain.repository_for(OrganizationSettings)
        try:
            settings = repo.get(command.organization_id)
            settings.bonus_percentage = command.bonus_percentage
        except ObjectNotFoundError:
            settings = OrganizationSettings(
                id=command.organization_id,
                bonus_percentage=command.bonus_percentage,
            )
        repo.add(settings)
        return str(settings.id)


def get_bonus_percentage(organization_id) -> int:
    """Return the organization's bonus percentage, 0 when unset."""
    try:
        settings = current_domain.repository_for(OrganizationSettings).get(organization_id)
    except ObjectNotFoundError:
        return 0
    return settings.bonus_percentage or 0
