#!/usr/bin/env python3
"""
Rewriting AliSim replay commands taken from IQ-TREE reports.

The report prints a command meant for a shell, e.g.

    --alisim simulated_MSA -t aln.treefile -m "GTR{1,2,3,4,5}+FU{...}+R2{...}" --length 1000

Since the argument list is handed to the process without a shell, the
quoting is resolved here before individual flags are retargeted to the
current run's output prefix, seed, length and thread count.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

logger = logging.getLogger(__name__)


def tokenize(command: str) -> List[str]:
    """
    Split a command string on unquoted whitespace.
    
    Double-quoted regions stay inside one token and lose their quote
    characters, so `-m "GTR{1,2}+R2{0.5 0.5}"` yields two tokens.
    
    Args:
        command: Command line as printed in the report
        
    Returns:
        List of tokens
        
    Raises:
        ValueError: Unbalanced double quote
    """
    tokens = []
    current = []
    in_quotes = False
    has_token = False
    
    for char in command:
        if char == '"':
            in_quotes = not in_quotes
            has_token = True
        elif char.isspace() and not in_quotes:
            if has_token:
                tokens.append(''.join(current))
                current = []
                has_token = False
        else:
            current.append(char)
            has_token = True
    
    if in_quotes:
        raise ValueError(f"Unbalanced double quote in command: {command}")
    if has_token:
        tokens.append(''.join(current))
    
    return tokens


def replace_or_append(tokens: Sequence[str], flag: str, value: Optional[str] = None,
                      flag_only: bool = False) -> List[str]:
    """
    Set a flag's value in a token list, returning a new list.
    
    If the flag is present, the token after its first occurrence is
    replaced (left alone when flag_only). A flag that ends the list has
    no value to replace, so the value is appended after it. An absent
    flag is appended with its value, or alone when flag_only.
    
    Args:
        tokens: Input tokens (not modified)
        flag: Flag to set, e.g. "--seed"
        value: New value for the flag
        flag_only: The flag takes no value
        
    Returns:
        New token list
    """
    result = list(tokens)
    
    if flag in result:
        if flag_only or value is None:
            return result
        idx = result.index(flag)
        if idx + 1 < len(result):
            result[idx + 1] = str(value)
        else:
            logger.warning(f"Flag {flag} has no value in replay command; appending {value}")
            result.append(str(value))
        return result
    
    if flag_only:
        result.append(flag)
    elif value is not None:
        result.extend([flag, str(value)])
    
    return result


def strip_executable(tokens: Sequence[str]) -> List[str]:
    """Drop a leading token naming the IQ-TREE binary, if present."""
    result = list(tokens)
    if result and not result[0].startswith('-') and 'iqtree' in Path(result[0]).name.lower():
        return result[1:]
    return result


def build_replay_args(command: str, sim_prefix: Union[str, Path], replicates: int,
                      seed: int, n_sites: int, threads: Union[int, str],
                      alignment: Optional[Union[str, Path]] = None) -> List[str]:
    """
    Turn a replay command from a report into arguments for this run.
    
    Args:
        command: Raw replay command string
        sim_prefix: Output prefix for the simulated alignments
        replicates: Number of alignments to simulate
        seed: Random seed
        n_sites: Alignment length
        threads: IQ-TREE thread count
        alignment: Empirical alignment whose gap pattern should be copied
        
    Returns:
        Argument list for the process invoker
    """
    tokens = strip_executable(tokenize(command.strip()))
    
    tokens = replace_or_append(tokens, "--alisim", str(sim_prefix))
    tokens = replace_or_append(tokens, "--num-alignments", str(replicates))
    tokens = replace_or_append(tokens, "--seed", str(seed))
    tokens = replace_or_append(tokens, "--length", str(n_sites))
    tokens = replace_or_append(tokens, "-T", str(threads))
    tokens = replace_or_append(tokens, "--redo", flag_only=True)
    
    if alignment is not None:
        tokens = replace_or_append(tokens, "-s", str(alignment))
    
    return tokens
