#pip install z3-solver
#Z3で疑似乱数生成器(xorshift)の出力を予測する
#https://burion.net/entry/2023/09/24/232230
# modules/seed_solver.py
import logging
from typing import NamedTuple, Optional, Sequence

import z3

from .xorshift import U32_MASK

logger = logging.getLogger(__name__)


class SolveResult(NamedTuple):
    seed: int
    unique: Optional[bool]  # Noneは判定不能(unknown)


def xorshift32_z3(x: z3.BitVecRef) -> z3.BitVecRef:
    """Z3 用の xorshift32"""
    x = x ^ (x << 13)
    x = x ^ z3.LShR(x, 17)
    x = x ^ (x << 15)
    return x


def _check_unique(solver: z3.Solver, seed_var: z3.BitVecRef, seed: int) -> Optional[bool]:
    #重解チェック
    solver.push()
    solver.add(seed_var != z3.BitVecVal(seed, 32))
    result = solver.check()
    solver.pop()
    if result == z3.unsat:
        return True
    if result == z3.sat:
        return False
    logger.warning('uniqueness unknown: %s', solver.reason_unknown())
    return None


def recover_seed(outputs: Sequence[int], exclude_zero: bool = True) -> Optional[SolveResult]:
    """
    連続したadvanceの出力(生の状態)から内部シードを求める。
    一致するシードがなければNone。
    """
    if not outputs:
        raise ValueError('outputs must not be empty')

    seed_var = z3.BitVec('seed_var', 32)
    solver = z3.Solver()
    if exclude_zero:
        # 0は0にしか遷移しない
        solver.add(seed_var != 0)

    current = seed_var
    for value in outputs:
        current = xorshift32_z3(current)
        solver.add(current == z3.BitVecVal(value & U32_MASK, 32))

    if solver.check() != z3.sat:
        logger.info('unsat (一致するシードなし): %s', list(outputs))
        return None

    seed = solver.model()[seed_var].as_long()
    unique = _check_unique(solver, seed_var, seed)
    logger.debug('seed: %d (unique=%s)', seed, unique)
    return SolveResult(seed, unique)


def previous_seed(state: int) -> int:
    """advance(x) == state となるxを解く。xorshift32は全単射なので必ず一意。"""
    solved = recover_seed([state], exclude_zero=False)
    if solved is None:
        raise ValueError(f'no predecessor for {state}')
    return solved.seed
