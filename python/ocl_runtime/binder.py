"""
Bind typed host arguments to a kernel's positional parameters.

Binding checks the whole list before touching the device (capacity, descriptor
types, arity and, where the runtime reports it, each parameter's address space
and type). It then walks the list in order: array arguments get a fresh device
buffer filled from the host array, scalars are set by value. A failure part way
through releases every buffer this call allocated, so a rejected bind never
leaves device memory behind.
"""

import logging
from typing import Optional, Sequence

import pyopencl as cl

from .errors import ArgumentBindError, ArgumentCapacityError, HarnessError, KernelSignatureError
from .kernel_args import ARG_TYPES, BoundArgument, BoundArguments, KernelArg
from .transfer import allocate_buffer, copy_to_device, release_buffer

logger = logging.getLogger(__name__)

_ARRAY_QUALIFIERS = (
    cl.kernel_arg_address_qualifier.GLOBAL,
    cl.kernel_arg_address_qualifier.CONSTANT,
)

_TYPE_ALIASES = {
    "unsigned int": "uint",
    "unsigned char": "uchar",
    "_Bool": "bool",
}

_TYPE_QUALIFIERS = {"const", "volatile", "restrict", "__global", "global", "__constant", "constant"}


def _normalize_type_name(type_name: str) -> str:
    """'const double*' -> 'double', 'unsigned int' -> 'uint'."""
    words = type_name.replace("\x00", "").replace("*", " ").split()
    base = " ".join(w for w in words if w not in _TYPE_QUALIFIERS)
    return _TYPE_ALIASES.get(base, base)


def _kernel_name(kernel: cl.Kernel) -> str:
    try:
        return kernel.function_name
    except cl.Error:
        return "<kernel>"


def check_signature(kernel: cl.Kernel, args: Sequence[KernelArg]) -> None:
    """
    Compare argument kinds with the kernel's declared parameters.

    Only runs where the runtime reports argument info; without it the arity
    check done by bind_arguments is all the runtime lets us verify.

    Raises:
        KernelSignatureError: On an address space or type mismatch
    """
    for index, arg in enumerate(args):
        try:
            qualifier = kernel.get_arg_info(index, cl.kernel_arg_info.ADDRESS_QUALIFIER)
            type_name = kernel.get_arg_info(index, cl.kernel_arg_info.TYPE_NAME)
        except cl.Error as e:
            logger.debug(f"Kernel argument info not available, skipping signature check: {e}")
            return

        if arg.is_array != (qualifier in _ARRAY_QUALIFIERS):
            expected = "a __global pointer" if arg.is_array else "a by-value scalar"
            logger.error(f"Error: kernel arg {index} is not {expected}!")
            raise KernelSignatureError(
                f"Argument {index} ({type(arg).__name__}) needs {expected} parameter, "
                f"kernel declares '{type_name}'",
                index=index,
            )

        base_type = _normalize_type_name(str(type_name))
        if base_type not in arg.cl_type_names:
            logger.error(f"Error: kernel arg {index} has type '{type_name}'!")
            raise KernelSignatureError(
                f"Argument {index} ({type(arg).__name__}) does not match parameter type "
                f"'{type_name}'; expected one of {', '.join(arg.cl_type_names)}",
                index=index,
            )


def bind_arguments(
    context: cl.Context,
    queue: cl.CommandQueue,
    kernel: cl.Kernel,
    args: Sequence[KernelArg],
    max_args: int,
) -> BoundArguments:
    """
    Materialise and bind an ordered argument list.

    Args:
        context: Context to allocate buffers in
        queue: Queue for the host-to-device copies
        kernel: Kernel whose parameters are set
        args: Descriptors in parameter order
        max_args: Binder capacity

    Returns:
        The bound-argument table for this kernel

    Raises:
        ArgumentCapacityError: If more than max_args arguments are given
        KernelSignatureError: If the list does not match the kernel parameters
        ArgumentBindError: If an argument is not a descriptor or fails to bind
    """
    args = list(args)
    if len(args) > max_args:
        logger.error(f"Error: {len(args)} kernel args exceed the maximum of {max_args}!")
        raise ArgumentCapacityError(
            f"{len(args)} kernel arguments exceed the maximum of {max_args}"
        )

    for index, arg in enumerate(args):
        if not isinstance(arg, ARG_TYPES):
            logger.error(f"Error: illegal argument type for kernel arg {index}!")
            raise ArgumentBindError(
                f"Argument {index} is {type(arg).__name__}, expected one of "
                f"{', '.join(t.__name__ for t in ARG_TYPES)}",
                index=index,
            )

    num_params = kernel.num_args
    if len(args) != num_params:
        logger.error(
            f"Error: kernel '{_kernel_name(kernel)}' takes {num_params} args, got {len(args)}!"
        )
        raise KernelSignatureError(
            f"Kernel '{_kernel_name(kernel)}' declares {num_params} parameters, "
            f"{len(args)} arguments given"
        )
    check_signature(kernel, args)

    table = BoundArguments(kernel=kernel)
    index = 0
    try:
        for index, arg in enumerate(args):
            _bind_one(context, queue, kernel, index, arg, table)
    except Exception as e:
        release_table(table)
        if isinstance(e, (HarnessError, cl.Error)):
            logger.error(f"Error: Failed to set kernel arg {index}!")
            raise ArgumentBindError(f"Failed to set kernel arg {index}: {e}", index=index) from e
        raise

    logger.info(
        f"Bound {len(table)} arguments to kernel '{_kernel_name(kernel)}' "
        f"({len(table.arrays())} device buffers)"
    )
    return table


def _bind_one(
    context: cl.Context,
    queue: cl.CommandQueue,
    kernel: cl.Kernel,
    index: int,
    arg: KernelArg,
    table: BoundArguments,
) -> None:
    arg.validate()
    if arg.is_array:
        buf = allocate_buffer(context, arg.nbytes)
        table.entries.append(BoundArgument(arg=arg, buffer=buf))
        copy_to_device(queue, arg.data, buf, arg.count)
        kernel.set_arg(index, buf)
        logger.debug(f"  arg {index}: {type(arg).__name__}[{arg.count}] -> {arg.nbytes} bytes")
    else:
        table.entries.append(BoundArgument(arg=arg))
        kernel.set_arg(index, arg.to_cl())
        logger.debug(f"  arg {index}: {type(arg).__name__}({arg.value})")


def release_table(table: Optional[BoundArguments]) -> int:
    """
    Release the device buffers of a table.

    Already released entries are skipped, so calling this again is a no-op.

    Returns:
        Number of buffers released by this call
    """
    if table is None:
        return 0
    released = 0
    for entry in table:
        if entry.buffer is not None:
            release_buffer(entry.buffer)
            entry.buffer = None
            released += 1
    return released


def swap_entries(table: BoundArguments, first: int, second: int) -> None:
    """
    Exchange two bound arguments and rebind both parameter slots.

    Used for double buffering: swapping the input and output vectors of a
    stencil kernel makes the next launch read what the previous one wrote,
    without any host round trip.

    Raises:
        IndexError: If either index is outside the table
        KernelSignatureError: If the two arguments differ in type or byte size
        ArgumentBindError: If the runtime rejects the rebind
    """
    for index in (first, second):
        if index < 0 or index >= len(table):
            raise IndexError(f"Argument index {index} outside [0, {len(table)})")
    entries = table.entries
    if type(entries[first].arg) is not type(entries[second].arg):
        raise KernelSignatureError(
            f"Cannot swap {type(entries[first].arg).__name__} argument {first} with "
            f"{type(entries[second].arg).__name__} argument {second}"
        )
    if entries[first].is_array and entries[first].arg.nbytes != entries[second].arg.nbytes:
        logger.error(f"Error: kernel args {first} and {second} differ in size!")
        raise KernelSignatureError(
            f"Cannot swap argument {first} ({entries[first].arg.nbytes} bytes) with "
            f"argument {second} ({entries[second].arg.nbytes} bytes)"
        )
    for index in (first, second):
        if entries[index].released:
            raise ArgumentBindError(f"Argument {index} refers to a released buffer", index=index)
    entries[first], entries[second] = entries[second], entries[first]
    for index in (first, second):
        entry = entries[index]
        value = entry.buffer if entry.is_array else entry.arg.to_cl()
        try:
            table.kernel.set_arg(index, value)
        except cl.Error as e:
            logger.error(f"Error: Failed to set kernel arg {index}!")
            raise ArgumentBindError(f"Failed to set kernel arg {index}: {e}", index=index) from e
