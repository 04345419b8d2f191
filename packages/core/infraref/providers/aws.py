"""AWS resource constructors."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

from infraref.providers import ResourceProvider

if TYPE_CHECKING:
    from infraref.reference import ResourceReference
    from infraref.template import Template

Attrs = Mapping[str, Any] | None


class AWSProvider(ResourceProvider):
    namespace = "aws"

    def aws_vpc(self, template: Template, name: str, attributes: Attrs = None) -> ResourceReference:
        return self.build(template, "aws_vpc", name, attributes)

    def aws_subnet(self, template: Template, name: str, attributes: Attrs = None) -> ResourceReference:
        return self.build(template, "aws_subnet", name, attributes)

    def aws_security_group(self, template: Template, name: str, attributes: Attrs = None) -> ResourceReference:
        return self.build(template, "aws_security_group", name, attributes)

    def aws_instance(self, template: Template, name: str, attributes: Attrs = None) -> ResourceReference:
        return self.build(template, "aws_instance", name, attributes)

    def aws_s3_bucket(self, template: Template, name: str, attributes: Attrs = None) -> ResourceReference:
        return self.build(template, "aws_s3_bucket", name, attributes)

    def aws_iam_role(self, template: Template, name: str, attributes: Attrs = None) -> ResourceReference:
        return self.build(template, "aws_iam_role", name, attributes)

    def aws_lambda_function(self, template: Template, name: str, attributes: Attrs = None) -> ResourceReference:
        return self.build(template, "aws_lambda_function", name, attributes)

    def aws_db_instance(self, template: Template, name: str, attributes: Attrs = None) -> ResourceReference:
        return self.build(template, "aws_db_instance", name, attributes)
