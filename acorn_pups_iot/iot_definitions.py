'''
© 2022 Daniil Sokolov (daniil.sokolov@webcloudai.com)
MIT License
'''
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List

from aws_cdk import CfnTag

import logging
_top_logger = logging.getLogger(__name__)

PROJECT_NAME = "acorn-pups"
SERVICE_NAME = "IoT-Core"

SUPPORTED_LOG_LEVELS = ["DEBUG", "INFO", "WARN", "ERROR"]
SUPPORTED_RULE_ERROR_DESTINATIONS = ["cloudwatch"]

#! AWS IoT Core platform limit
MAX_SEARCHABLE_ATTRIBUTES = 3

IOT_TOPIC_TEMPLATES:Dict[str,str] = {
    "buttonPress": "acorn-pups/button-press/+",
    "status": "acorn-pups/status/+",
    "settings": "acorn-pups/settings/+",
    "commands": "acorn-pups/commands/+",
}

IOT_TOPIC_PREFIXES:Dict[str,str] = {
    k: v[:-1] for k,v in IOT_TOPIC_TEMPLATES.items()
}

IOT_CLIENT_ID_PATTERN = "acorn-esp32-*"

@dataclass(frozen=True)
class IotStackConfig:
    '''
    Options shared by every Acorn Pups IoT stack (environment specific)
    '''
    environment:str
    log_level:str = "INFO"
    enable_detailed_monitoring:bool = True
    certificate_expiration_days:int = 365
    rule_error_destination:str = "cloudwatch"

    def __post_init__(self):
        if not self.environment:
            raise ValueError("environment must be a non empty string")
        if self.log_level not in SUPPORTED_LOG_LEVELS:
            raise ValueError(f"log_level {self.log_level} is not supported. Use one of {SUPPORTED_LOG_LEVELS}")
        if self.rule_error_destination not in SUPPORTED_RULE_ERROR_DESTINATIONS:
            raise ValueError(f"rule_error_destination {self.rule_error_destination} is not supported. Use one of {SUPPORTED_RULE_ERROR_DESTINATIONS}")
        if isinstance(self.certificate_expiration_days, bool) or not isinstance(self.certificate_expiration_days, int) or self.certificate_expiration_days<=0:
            raise ValueError(f"certificate_expiration_days must be a positive integer, got {self.certificate_expiration_days!r}")

    @property
    def is_production(self)->bool:
        return self.environment == "prod"


def resource_tags(environment:str, component:str, extra:Dict[str,str]=None)->List[CfnTag]:
    ''' standard tags for L1 (Cfn) resources '''
    tags = {
        "Project": PROJECT_NAME,
        "Environment": environment,
        "Service": SERVICE_NAME,
        "Component": component,
        **(extra or {})
    }
    return [CfnTag(key=k, value=v) for k,v in tags.items()]
