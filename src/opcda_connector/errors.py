"""
Exceptions raised by the connector, and translation of provider status codes
into readable messages.
"""


class ConnectorError(Exception):
    """ Base class for errors raised by the connector. """


class ConfigurationError(ConnectorError):
    """ The configuration is incomplete or invalid. The unit cannot start. """


class DuplicateGroupError(ConfigurationError):
    """ A group with the same name is already registered with the server connection. """


class ServerConnectionError(ConnectorError):
    """ The connection to the server could not be established. """


class StatusCodes:
    """ Common status codes returned by OPC DA servers and the COM layer beneath them. """

    ok = 0x00000000
    e_fail = 0x80004005
    e_noninterface = 0x80004002
    e_accessdenied = 0x80070005
    e_outofmemory = 0x8007000E
    e_invalidarg = 0x80070057
    class_not_registered = 0x80040154
    rpc_server_unavailable = 0x800706BA
    opc_invalid_handle = 0xC0040001
    opc_bad_type = 0xC0040004
    opc_public = 0xC0040005
    opc_bad_rights = 0xC0040006
    opc_unknown_item_id = 0xC0040007
    opc_invalid_item_id = 0xC0040008
    opc_invalid_filter = 0xC0040009
    opc_unknown_path = 0xC004000A
    opc_range = 0xC004000B
    opc_duplicate_name = 0xC004000C
    opc_unsupported_rate = 0x0004000D
    opc_clamp = 0x0004000E
    opc_in_use = 0x0004000F
    opc_invalid_config_file = 0xC0040010
    opc_not_found = 0xC0040011


_messages = {
    StatusCodes.ok: "Success",
    StatusCodes.e_fail: "Unspecified error",
    StatusCodes.e_noninterface: "No such interface supported",
    StatusCodes.e_accessdenied: "Access denied",
    StatusCodes.e_outofmemory: "Out of memory",
    StatusCodes.e_invalidarg: "One or more arguments are invalid",
    StatusCodes.class_not_registered: "Class not registered",
    StatusCodes.rpc_server_unavailable: "The RPC server is unavailable",
    StatusCodes.opc_invalid_handle: "The value of the handle is invalid",
    StatusCodes.opc_bad_type: "The server cannot convert the data between the specified format and the requested "
                              "data type",
    StatusCodes.opc_public: "The requested operation cannot be done on a public group",
    StatusCodes.opc_bad_rights: "The item's access rights do not allow the operation",
    StatusCodes.opc_unknown_item_id: "The item ID is not defined in the server address space",
    StatusCodes.opc_invalid_item_id: "The item ID does not conform to the server's syntax",
    StatusCodes.opc_invalid_filter: "The filter string was not valid",
    StatusCodes.opc_unknown_path: "The item's access path is not known to the server",
    StatusCodes.opc_range: "The value was out of range",
    StatusCodes.opc_duplicate_name: "Duplicate name not allowed",
    StatusCodes.opc_unsupported_rate: "The server does not support the requested data rate but will use the "
                                      "closest available rate",
    StatusCodes.opc_clamp: "A value passed to write was accepted but the output was clamped",
    StatusCodes.opc_in_use: "The operation cannot be performed because the object is being referenced",
    StatusCodes.opc_invalid_config_file: "The server's configuration file is an invalid format",
    StatusCodes.opc_not_found: "The requested object was not found",
}


def describe_status_code(code):
    """
    Translates a provider status code to a message. Negative codes (signed HRESULTs)
    are treated as their unsigned equivalent.

    >>> describe_status_code(0xC0040007)
    'The item ID is not defined in the server address space (0xC0040007)'
    >>> describe_status_code(-1073479673)
    'The item ID is not defined in the server address space (0xC0040007)'
    >>> describe_status_code(0x12345678)
    'Unknown error (0x12345678)'
    """
    try:
        unsigned = int(code) & 0xFFFFFFFF
    except (TypeError, ValueError):
        return "Unknown error (%s)" % (code,)
    message = _messages.get(unsigned, "Unknown error")
    return "%s (0x%08X)" % (message, unsigned)
